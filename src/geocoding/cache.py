"""
Address cache stores.

Both stores map a coordinate cache key to a resolved address string. Entries are
overwritten wholesale and never expire.
"""
import logging
from threading import Lock
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.db.database import AddressCacheDB, SessionLocal
from src.geocoding.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


class InMemoryCacheStore:
    """Process-local cache. Lost on restart."""

    def __init__(self):
        self._entries: Dict[str, str] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, address: str) -> None:
        with self._lock:
            self._entries[key] = address

    def __len__(self):
        with self._lock:
            return len(self._entries)


class DatabaseCacheStore:
    """
    Durable cache backed by the ``address_cache`` table.

    Read errors are reported as a miss since the cache only ever saves upstream calls.
    Write errors surface as PersistenceFailure for the caller to log.
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            entry = db.get(AddressCacheDB, key)
            return entry.address if entry else None
        except SQLAlchemyError as e:
            logger.warning(f"Address cache read failed for key {key}: {e}")
            return None
        finally:
            db.close()

    def put(self, key: str, address: str) -> None:
        db = self._session_factory()
        try:
            # merge() replaces the row, last writer wins
            db.merge(AddressCacheDB(key=key, address=address))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not cache address for key {key}: {e}") from e
        finally:
            db.close()


def build_cache_store(backend="database", session_factory=SessionLocal):
    """
    Create the cache store named by ``backend``.

    Args:
        backend: "database" for the durable table, "memory" for a process-local dict
        session_factory: SQLAlchemy session factory used by the database store

    Returns:
        A store exposing get(key) and put(key, address)
    """
    if backend == "memory":
        return InMemoryCacheStore()
    if backend == "database":
        return DatabaseCacheStore(session_factory)
    raise ValueError(f"Unknown cache backend '{backend}'. Choose 'database' or 'memory'.")
