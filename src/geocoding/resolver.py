import logging
from typing import Tuple, Union

from pydantic import ValidationError

from src import config
from src.db.database import SessionLocal
from src.geocoding.cache import build_cache_store
from src.geocoding.exceptions import PersistenceFailure, TransientUpstreamFailure, ValidationFailure
from src.geocoding.nominatim import NominatimClient, format_address
from src.geocoding.rate_limiter import RateLimiter
from src.geocoding.retry import RetryPolicy
from src.models.shelter import Coordinate, cache_key

logger = logging.getLogger(__name__)

CoordinateLike = Union[Coordinate, Tuple[float, float]]


def _fmt(value) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, (int, float)):
        return f"{value:.4f}"
    return str(value)


def placeholder(lat, lon) -> str:
    """Displayable fallback used when no address could be resolved."""
    return f"Coordinates: {_fmt(lat)}, {_fmt(lon)}"


class GeocodeResolver:
    """
    Cache-backed, rate-limited, retrying reverse geocoder.

    ``resolve`` never raises: every failure path ends in the coordinate placeholder,
    which is never written to the cache.
    """

    def __init__(self, cache, rate_limiter: RateLimiter, retry_policy: RetryPolicy, client, key_precision=4):
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy
        self.client = client
        self.key_precision = key_precision

    def resolve(self, coordinate: CoordinateLike) -> str:
        try:
            coordinate = self._validate(coordinate)
        except ValidationFailure as e:
            logger.warning(f"Rejected coordinate before geocoding: {e}")
            lat, lon = self._raw_pair(coordinate)
            return placeholder(lat, lon)

        key = cache_key(coordinate, self.key_precision)
        try:
            cached = self.cache.get(key)
        except Exception as e:
            logger.warning(f"Address cache read failed for {key}, treating as a miss: {e}")
            cached = None
        if cached is not None:
            logger.debug(f"Address cache hit for {key}")
            return cached

        logger.debug(f"Address cache miss for {key}")
        try:
            outcome = self.retry_policy.execute(
                lambda: self._fetch_address(coordinate),
                description=f"Geocoding ({coordinate.lat}, {coordinate.lon})",
            )
        except Exception as e:
            logger.error(f"Unexpected error during geocoding: {e}", exc_info=True)
            return placeholder(coordinate.lat, coordinate.lon)

        if not outcome.succeeded:
            return placeholder(coordinate.lat, coordinate.lon)

        address = outcome.value
        try:
            self.cache.put(key, address)
        except PersistenceFailure as e:
            logger.error(f"Address resolved but not cached: {e}")
        except Exception as e:
            logger.error(f"Address resolved but not cached, unexpected cache error: {e}", exc_info=True)

        logger.info(f"Successfully geocoded coordinates ({coordinate.lat}, {coordinate.lon})")
        return address

    def _fetch_address(self, coordinate: Coordinate) -> str:
        # every upstream attempt, retries included, waits for its own slot
        self.rate_limiter.await_slot()
        components = self.client.reverse(coordinate)
        address = format_address(components)
        if not address:
            raise TransientUpstreamFailure(f"Empty address for coordinates ({coordinate.lat}, {coordinate.lon})")
        return address

    @staticmethod
    def _validate(coordinate) -> Coordinate:
        if isinstance(coordinate, Coordinate):
            return coordinate
        try:
            lat, lon = coordinate
            return Coordinate(lat=lat, lon=lon)
        except (TypeError, ValueError, ValidationError) as e:
            raise ValidationFailure(f"Invalid coordinate {coordinate!r}: {e}") from e

    @staticmethod
    def _raw_pair(coordinate):
        try:
            lat, lon = coordinate
            return lat, lon
        except (TypeError, ValueError):
            return coordinate, None


def build_default_resolver(session_factory=SessionLocal) -> GeocodeResolver:
    """Wire a resolver from environment configuration."""
    return GeocodeResolver(
        cache=build_cache_store(config.CACHE_BACKEND, session_factory=session_factory),
        rate_limiter=RateLimiter(min_interval=config.RATE_LIMIT_DELAY),
        retry_policy=RetryPolicy(max_retries=config.MAX_RETRIES, base_delay=config.RETRY_BASE_DELAY),
        client=NominatimClient(),
        key_precision=config.CACHE_KEY_PRECISION,
    )
