import os

os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", ".pytest_logs")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.db.database import Base
from src.geocoding.cache import InMemoryCacheStore
from src.geocoding.rate_limiter import RateLimiter
from src.geocoding.resolver import GeocodeResolver
from src.geocoding.retry import RetryPolicy


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start=100.0):
        self.now = start
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeNominatim:
    """
    Stands in for NominatimClient. Each call pops the next scripted response: a dict
    of address components is returned, an exception is raised. The last entry repeats.
    """

    def __init__(self, responses, clock=None):
        self._responses = list(responses)
        self._clock = clock
        self.calls = []

    def reverse(self, coordinate):
        self.calls.append((coordinate, self._clock.monotonic() if self._clock else None))
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_resolver(clock):
    def _make(responses, cache=None, min_interval=1.0, max_retries=3):
        client = FakeNominatim(responses, clock)
        resolver = GeocodeResolver(
            cache=cache if cache is not None else InMemoryCacheStore(),
            rate_limiter=RateLimiter(min_interval=min_interval, clock=clock.monotonic, sleep=clock.sleep),
            retry_policy=RetryPolicy(max_retries=max_retries, base_delay=1.0, sleep=clock.sleep),
            client=client,
        )
        return resolver, client

    return _make


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()
