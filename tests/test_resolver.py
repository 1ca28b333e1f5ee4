import pytest

from src.geocoding.cache import InMemoryCacheStore
from src.geocoding.exceptions import PersistenceFailure, TransientUpstreamFailure
from src.geocoding.resolver import placeholder
from src.models.shelter import Coordinate, cache_key

KYIV = Coordinate(lat=50.4501, lon=30.5234)
KYIV_ADDRESS = {"road": "Khreshchatyk", "house_number": "22", "city": "Kyiv", "country": "Ukraine"}


class BrokenCache(InMemoryCacheStore):
    def put(self, key, address):
        raise PersistenceFailure("disk full")


def test_second_resolution_is_cache_hit(make_resolver):
    resolver, client = make_resolver([KYIV_ADDRESS, TransientUpstreamFailure("upstream down")])

    first = resolver.resolve(KYIV)
    second = resolver.resolve(KYIV)

    assert first == "Khreshchatyk 22, Kyiv, Ukraine"
    assert second == first
    assert len(client.calls) == 1


def test_cache_hit_bypasses_rate_limiter(make_resolver, clock):
    cache = InMemoryCacheStore()
    cache.put(cache_key(KYIV), "Cached address")
    resolver, client = make_resolver([KYIV_ADDRESS], cache=cache)

    assert resolver.resolve(KYIV) == "Cached address"
    assert client.calls == []
    assert clock.sleeps == []


def test_nearby_coordinates_share_cache_key(make_resolver):
    resolver, client = make_resolver([KYIV_ADDRESS])

    resolver.resolve(Coordinate(lat=50.45012, lon=30.52341))
    resolver.resolve(Coordinate(lat=50.45008, lon=30.52339))

    assert len(client.calls) == 1


def test_upstream_calls_are_spaced_by_min_interval(make_resolver):
    resolver, client = make_resolver([{"city": "Kyiv"}], min_interval=1.5)

    for offset in range(4):
        resolver.resolve(Coordinate(lat=50.0 + offset, lon=30.0))

    times = [called_at for _, called_at in client.calls]
    assert len(times) == 4
    gaps = [later - earlier for earlier, later in zip(times, times[1:])]
    assert all(gap >= 1.5 for gap in gaps)


def test_always_failing_upstream_exhausts_retries(make_resolver):
    cache = InMemoryCacheStore()
    resolver, client = make_resolver([TransientUpstreamFailure("HTTP 503")], cache=cache)

    address = resolver.resolve(KYIV)

    assert address == "Coordinates: 50.4501, 30.5234"
    assert len(client.calls) == 4
    assert len(cache) == 0


def test_retry_delays_follow_exponential_schedule(make_resolver, clock):
    resolver, client = make_resolver([TransientUpstreamFailure("timeout")], min_interval=0)

    resolver.resolve(KYIV)

    assert clock.sleeps == [1.0, 2.0, 4.0]


def test_placeholder_is_not_cached_after_outage(make_resolver):
    resolver, client = make_resolver([TransientUpstreamFailure("down")] * 4 + [KYIV_ADDRESS])

    assert resolver.resolve(KYIV) == placeholder(KYIV.lat, KYIV.lon)
    assert resolver.resolve(KYIV) == "Khreshchatyk 22, Kyiv, Ukraine"


def test_empty_address_is_retried(make_resolver):
    resolver, client = make_resolver([{}, {"city": "Kyiv"}])

    assert resolver.resolve(KYIV) == "Kyiv"
    assert len(client.calls) == 2


@pytest.mark.parametrize("raw", [(91.0, 30.0), (50.0, -181.0), (float("nan"), 30.0), ("north", "east"), None])
def test_invalid_coordinates_never_reach_upstream(make_resolver, raw):
    resolver, client = make_resolver([KYIV_ADDRESS])

    address = resolver.resolve(raw)

    assert address.startswith("Coordinates: ")
    assert client.calls == []


def test_tuple_coordinates_are_accepted(make_resolver):
    resolver, client = make_resolver([KYIV_ADDRESS])

    assert resolver.resolve((50.4501, 30.5234)) == "Khreshchatyk 22, Kyiv, Ukraine"


def test_cache_write_failure_still_returns_address(make_resolver):
    resolver, client = make_resolver([KYIV_ADDRESS], cache=BrokenCache())

    assert resolver.resolve(KYIV) == "Khreshchatyk 22, Kyiv, Ukraine"


def test_unexpected_client_error_returns_placeholder(make_resolver):
    cache = InMemoryCacheStore()
    resolver, client = make_resolver([RuntimeError("bug")], cache=cache)

    assert resolver.resolve(KYIV) == "Coordinates: 50.4501, 30.5234"
    assert len(client.calls) == 1
    assert len(cache) == 0


class OfflineStore:
    def __init__(self, get_error=None, put_error=None):
        self.get_error = get_error
        self.put_error = put_error

    def get(self, key):
        if self.get_error:
            raise self.get_error
        return None

    def put(self, key, address):
        if self.put_error:
            raise self.put_error


def test_any_cache_write_error_still_returns_address(make_resolver):
    resolver, client = make_resolver([{"city": "Kyiv"}], cache=OfflineStore(put_error=OSError("disk full")))

    assert resolver.resolve(KYIV) == "Kyiv"


def test_cache_read_error_is_treated_as_miss(make_resolver):
    resolver, client = make_resolver([{"city": "Kyiv"}], cache=OfflineStore(get_error=OSError("store offline")))

    assert resolver.resolve(KYIV) == "Kyiv"
    assert len(client.calls) == 1
