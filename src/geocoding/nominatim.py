import requests
import logging
from typing import Dict, Any, Optional

from src.config import NOMINATIM_BASE_URL, USER_AGENT, ACCEPT_LANGUAGE, REQUEST_TIMEOUT
from src.geocoding.exceptions import TransientUpstreamFailure

# Get logger
logger = logging.getLogger(__name__)

# Settlement fields in priority order
SETTLEMENT_FIELDS = ("city", "town", "village")


def format_address(components: Dict[str, Any]) -> str:
    """
    Build a display address from Nominatim ``address`` components.

    Order is street (with house number when both exist), settlement, country.
    Missing components are skipped; an empty string means nothing usable was found.
    """
    parts = []

    street = components.get("road") or components.get("street")
    if street:
        house_number = components.get("house_number")
        parts.append(f"{street} {house_number}" if house_number else street)

    for field in SETTLEMENT_FIELDS:
        if components.get(field):
            parts.append(components[field])
            break

    if components.get("country"):
        parts.append(components["country"])

    return ", ".join(str(part).strip() for part in parts if str(part).strip())


class NominatimClient:
    """Thin transport around the Nominatim reverse endpoint."""

    def __init__(
        self,
        base_url=NOMINATIM_BASE_URL,
        user_agent=USER_AGENT,
        accept_language=ACCEPT_LANGUAGE,
        timeout=REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.headers = {
            "User-Agent": user_agent,
            "Accept-Language": accept_language,
        }
        self._http = session or requests.Session()

    def reverse(self, coordinate) -> Dict[str, Any]:
        """
        Fetch the address components for a coordinate.

        Raises:
            TransientUpstreamFailure: on network errors, non-2xx statuses, undecodable
                bodies or a response without an ``address`` object
        """
        params = {
            "lat": coordinate.lat,
            "lon": coordinate.lon,
            "format": "json",
            "addressdetails": 1
        }

        try:
            response = self._http.get(
                self.base_url,
                params=params,
                headers=self.headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransientUpstreamFailure(f"Network error for coordinates ({coordinate.lat}, {coordinate.lon}): {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransientUpstreamFailure(f"Geocoding HTTP error ({response.status_code}) for coordinates ({coordinate.lat}, {coordinate.lon})")

        try:
            data = response.json()
        except ValueError as e:
            raise TransientUpstreamFailure(f"Malformed geocoding response for coordinates ({coordinate.lat}, {coordinate.lon})") from e

        address = data.get("address") if isinstance(data, dict) else None
        if not isinstance(address, dict):
            raise TransientUpstreamFailure(f"No address in geocoding response for coordinates ({coordinate.lat}, {coordinate.lon})")

        return address

    def close(self):
        self._http.close()
