import logging
from math import atan2, cos, radians, sin, sqrt
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from src.config import DEFAULT_RADIUS_KM
from src.models.shelter import Coordinate, Entity

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in kilometers between two coordinates."""
    lat1 = radians(a.lat)
    lat2 = radians(b.lat)
    dlat = lat2 - lat1
    dlon = radians(b.lon - a.lon)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # rounding can push h a hair past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(h), sqrt(1 - h))


def coerce_entity(item: Any) -> Entity:
    """
    Accept an Entity or a raw catalog record.

    Raw records may use the Entity shape or the flat ingestion shape
    ``{"id", "lat", "lon", "tags"}``.

    Raises:
        pydantic.ValidationError: when required coordinate fields are missing or invalid
        TypeError: when the item is neither an Entity nor a mapping
    """
    if isinstance(item, Entity):
        return item
    if not isinstance(item, Mapping):
        raise TypeError(f"Unsupported catalog item type: {type(item).__name__}")
    if "coordinate" in item:
        return Entity.model_validate(item)
    return Entity.model_validate({
        "id": item.get("id"),
        "coordinate": {"lat": item.get("lat"), "lon": item.get("lon")},
        "attributes": item.get("tags") or item.get("attributes") or {},
    })


class ProximityFilter:
    """
    Linear-scan radius filter over a shelter catalog.

    The result is a stable subsequence of the catalog. There is no spatial index, so
    cost grows with catalog size; fine for the few hundred shelters of a metro area.
    """

    def __init__(self, default_radius_km=DEFAULT_RADIUS_KM):
        self.default_radius_km = default_radius_km

    def filter(self, catalog: Iterable[Any], reference: Coordinate, radius_km: Optional[float] = None) -> List[Entity]:
        radius = self.default_radius_km if radius_km is None else radius_km
        nearby = []

        for index, item in enumerate(catalog):
            try:
                entity = coerce_entity(item)
            except (ValidationError, TypeError) as e:
                logger.warning(f"Skipping malformed catalog entry #{index}: {e}")
                continue

            distance = haversine_km(reference, entity.coordinate)
            logger.debug(f"Shelter {entity.id}: distance {distance:.2f} km")
            if distance <= radius:
                nearby.append(entity)

        return nearby
