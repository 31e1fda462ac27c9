"""Key-value persistence consumed by the auth core: in-memory and SQL-backed implementations."""

import logging
import threading
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.database import get_session_factory
from app.models import KeyValueEntry
from app.services.errors import StorageUnavailableError

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Storage keys for users, credentials and sessions.
USERS_STORAGE_KEY = "tms-users"
USER_PASSWORDS_KEY = "tms-user-passwords"
AUTH_USER_KEY = "tms-auth-user"
AUTH_STATUS_KEY = "tms-auth-status"
# Index of persisted session ids; the interface has no key listing.
AUTH_SESSIONS_KEY = "tms-auth-sessions"

# Probe key read by the health check.
HEALTH_PROBE_KEY = "tms-health-probe"


def session_user_key(session_id: str) -> str:
    return f"{AUTH_USER_KEY}:{session_id}"


def session_status_key(session_id: str) -> str:
    return f"{AUTH_STATUS_KEY}:{session_id}"


class KeyValueStore(Protocol):
    """External persistence collaborator. Implementations raise StorageUnavailableError on I/O failure."""

    def get(self, key: str) -> bytes | None: ...

    def put(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Thread-safe dict store for tests and single-process development."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class SqlKeyValueStore:
    """Key-value store on the kv_entries table; each call runs in its own DB session."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> bytes | None:
        try:
            with self._session_factory() as db:
                row = db.get(KeyValueEntry, key)
                return None if row is None else bytes(row.value)
        except SQLAlchemyError as e:
            logger.error("Storage read failed for key=%s: %s", key, e)
            raise StorageUnavailableError(f"Storage read failed: {e!s}", cause=e) from e

    def put(self, key: str, value: bytes) -> None:
        try:
            with self._session_factory() as db:
                db.merge(KeyValueEntry(key=key, value=bytes(value)))
                db.commit()
        except SQLAlchemyError as e:
            logger.error("Storage write failed for key=%s: %s", key, e)
            raise StorageUnavailableError(f"Storage write failed: {e!s}", cause=e) from e

    def delete(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete(
                    synchronize_session=False
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.error("Storage delete failed for key=%s: %s", key, e)
            raise StorageUnavailableError(f"Storage delete failed: {e!s}", cause=e) from e


def check_store_available(store: KeyValueStore) -> bool:
    """Run a trivial read to verify the store is reachable."""
    try:
        store.get(HEALTH_PROBE_KEY)
        return True
    except StorageUnavailableError:
        return False


def build_store(settings: "Settings") -> KeyValueStore:
    """Return the store selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory storage; users and sessions are lost on restart.")
        return InMemoryKeyValueStore()
    return SqlKeyValueStore(get_session_factory())
