"""Auth service: login, logout, authorization checks and user management.

The only component that mutates the user directory and credential store. Directory and
credential writes run under one write lock and are rolled back together on failure, so the two
never diverge. Login does not take that lock; it reads a consistent snapshot and suspends only
on credential verification, the latency floor and session persistence.
"""

import asyncio
import json
import logging
import threading
import time
from collections.abc import Collection
from typing import TYPE_CHECKING

from pydantic import ValidationError

from app.core.security import BcryptHasher, PasswordHasher
from app.schemas.auth import Role, Session, User, UserCreate, UserUpdate
from app.services.authorization import can_perform, can_reach_route, has_permission
from app.services.credentials import CredentialStore
from app.services.directory import UserDirectory
from app.services.errors import (
    InvalidCredentialsError,
    NotFoundError,
    PermissionDeniedError,
    SessionRevokedError,
    StorageUnavailableError,
)
from app.services.permissions import (
    ACTION_ADD_USER,
    ACTION_DELETE_USER,
    ACTION_EDIT_USER,
    DEFAULT_CATALOG,
    USERS_ROUTE,
    PermissionCatalog,
)
from app.services.session import SessionManager
from app.services.storage import (
    AUTH_SESSIONS_KEY,
    KeyValueStore,
    build_store,
    session_status_key,
    session_user_key,
)

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Persisted value of the authenticated flag.
_AUTHENTICATED = b"true"

# One account per role, created when the directory is empty on first start.
DEFAULT_USERS: tuple[dict[str, str], ...] = (
    {
        "username": "admin",
        "display_name": "Administrator",
        "email": "admin@translogica.fr",
        "role": Role.ADMIN.value,
        "national_id": "AB123456",
        "city": "Casablanca",
        "address": "Boulevard Mohammed V",
    },
    {
        "username": "rh",
        "display_name": "HR Manager",
        "email": "rh@translogica.fr",
        "role": Role.HR.value,
        "national_id": "K456789",
        "city": "Rabat",
        "address": "Rue Hassan II",
    },
    {
        "username": "pl",
        "display_name": "Planner",
        "email": "planificateur@translogica.fr",
        "role": Role.PLANNER.value,
        "national_id": "X987654",
        "city": "Marrakech",
        "address": "Avenue des FAR",
    },
    {
        "username": "cl",
        "display_name": "Sales Representative",
        "email": "commercial@translogica.fr",
        "role": Role.COMMERCIAL.value,
        "national_id": "J234567",
        "city": "Fès",
        "address": "Boulevard Zerktouni",
    },
    {
        "username": "ap",
        "display_name": "Procurement Officer",
        "email": "approvisionneur@translogica.fr",
        "role": Role.PROCUREMENT.value,
        "national_id": "BE789012",
        "city": "Tanger",
        "address": "Avenue Mohammed VI",
    },
    {
        "username": "ch",
        "display_name": "Operations Officer",
        "email": "exploitation@translogica.fr",
        "role": Role.OPERATIONS.value,
        "national_id": "C345678",
        "city": "Agadir",
        "address": "Boulevard Anfa",
    },
    {
        "username": "chh",
        "display_name": "Maintenance Officer",
        "email": "maintenance@translogica.fr",
        "role": Role.MAINTENANCE.value,
        "national_id": "D901234",
        "city": "Meknès",
        "address": "Rue Ibn Batouta",
    },
)


class AuthService:
    """Consumer interface of the auth core. Every call is scoped by an explicit session id."""

    def __init__(
        self,
        store: KeyValueStore,
        hasher: PasswordHasher | None = None,
        catalog: PermissionCatalog = DEFAULT_CATALOG,
        sessions: SessionManager | None = None,
        login_min_latency_sec: float = 0.0,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._directory = UserDirectory(store)
        self._credentials = CredentialStore(store, hasher or BcryptHasher())
        self._sessions = sessions or SessionManager()
        self._login_min_latency_sec = login_min_latency_sec
        self._write_lock = threading.Lock()
        self._session_index_lock = threading.Lock()
        self._started = False

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    # ── Startup ─────────────────────────────────────────────────────
    def start(self, seed_password: str | None = None) -> None:
        """Load directory and credentials, seed if empty, restore persisted sessions. Runs once."""
        if self._started:
            return
        self._directory.load()
        self._credentials.load()
        if seed_password is not None and self._directory.is_empty():
            self.seed_default_users(seed_password)
        for user in self.users_without_credentials():
            logger.warning("User %s has no stored credential and cannot log in", user.username)
        restored = self._sessions.restore(self._load_persisted_sessions())
        self._started = True
        logger.info(
            "Auth service started: users=%s, sessions_restored=%s",
            len(self._directory.list_users()),
            restored,
        )

    def users_without_credentials(self) -> list[User]:
        """Directory entries with no matching credential, e.g. after a partial restore of storage."""
        return [u for u in self._directory.list_users() if not self._credentials.has(u.username)]

    def seed_default_users(self, password: str) -> list[User]:
        """Create the default account for every role."""
        created = [
            self.provision_user(UserCreate(**profile, password=password))
            for profile in DEFAULT_USERS
        ]
        logger.info("Seeded %s default users", len(created))
        return created

    # ── Login / logout ──────────────────────────────────────────────
    async def login(self, session_id: str, username: str, secret: str) -> User:
        """
        Authenticate and bind the user to session_id.

        Raises InvalidCredentialsError for an unknown username or a wrong secret alike.
        Raises SessionRevokedError if logout(session_id) completed while this call was in flight.
        """
        started = time.monotonic()
        generation = self._sessions.generation(session_id)
        user = self._directory.find_by_username(username)
        verified = await asyncio.to_thread(self._credentials.verify, username, secret)
        remaining = self._login_min_latency_sec - (time.monotonic() - started)
        if remaining > 0:
            await asyncio.sleep(remaining)

        if user is None or not verified:
            logger.warning("Login failed for username=%s", username)
            raise InvalidCredentialsError()

        session = self._sessions.establish(session_id, user, expected_generation=generation)
        if session is None:
            logger.info("Login for username=%s abandoned: session logged out meanwhile", username)
            raise SessionRevokedError()
        try:
            await asyncio.to_thread(self._persist_session, session)
        except StorageUnavailableError:
            self._sessions.clear(session_id)
            raise
        if self._sessions.generation(session_id) != generation:
            # Logged out while persisting; logout wins. A newer login may own the snapshot now.
            if self._sessions.get(session_id) is None:
                await asyncio.to_thread(self._purge_session, session_id)
            logger.info("Login for username=%s abandoned: session logged out meanwhile", username)
            raise SessionRevokedError()

        logger.info("Login succeeded: username=%s role=%s", user.username, user.role.value)
        return user

    def logout(self, session_id: str) -> None:
        """End the session. Idempotent: an anonymous session is not an error."""
        identity = self._sessions.current(session_id)
        self._sessions.clear(session_id)
        self._purge_session(session_id)
        if identity is not None:
            logger.info("Logout: username=%s", identity.username)

    def current(self, session_id: str) -> User | None:
        return self._sessions.current(session_id)

    def session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    # ── Authorization ───────────────────────────────────────────────
    def can_reach_route(self, session_id: str, route: str) -> bool:
        return can_reach_route(self._catalog, self.current(session_id), route)

    def has_permission(self, session_id: str, required_roles: Collection[Role]) -> bool:
        return has_permission(self.current(session_id), required_roles)

    def can_perform(self, session_id: str, action: str) -> bool:
        return can_perform(self._catalog, self.current(session_id), action)

    def _require_action(self, session_id: str, action: str) -> User:
        identity = self.current(session_id)
        if not can_perform(self._catalog, identity, action):
            logger.warning(
                "Permission denied: action=%s username=%s",
                action,
                identity.username if identity else "<anonymous>",
            )
            raise PermissionDeniedError(f"Not allowed to perform '{action}'.")
        return identity

    def _require_route(self, session_id: str, route: str) -> User:
        identity = self.current(session_id)
        if not can_reach_route(self._catalog, identity, route):
            logger.warning(
                "Permission denied: route=%s username=%s",
                route,
                identity.username if identity else "<anonymous>",
            )
            raise PermissionDeniedError(f"Not allowed to access '{route}'.")
        return identity

    # ── User management ─────────────────────────────────────────────
    def list_users(self, session_id: str) -> list[User]:
        self._require_route(session_id, USERS_ROUTE)
        return self._directory.list_users()

    def get_user(self, session_id: str, user_id: str) -> User:
        self._require_route(session_id, USERS_ROUTE)
        user = self._directory.find_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User '{user_id}' not found.")
        return user

    def add_user(self, session_id: str, data: UserCreate) -> User:
        actor = self._require_action(session_id, ACTION_ADD_USER)
        user = self.provision_user(data)
        logger.info("User created: id=%s username=%s by=%s", user.id, user.username, actor.username)
        return user

    def provision_user(self, data: UserCreate) -> User:
        """Insert directory record and credential together, without a permission check."""
        with self._write_lock:
            user = self._directory.insert(data)
            try:
                self._credentials.set(user.username, data.password)
            except Exception:
                try:
                    self._directory.delete(user.id)
                except StorageUnavailableError:
                    logger.exception(
                        "Rollback failed after credential write error; user id=%s has no credential",
                        user.id,
                    )
                raise
        return user

    def update_user(self, session_id: str, user_id: str, changes: UserUpdate) -> User:
        actor = self._require_action(session_id, ACTION_EDIT_USER)
        fields = changes.model_dump(exclude_unset=True)
        password = fields.pop("password", None)
        with self._write_lock:
            existing = self._directory.find_by_id(user_id)
            if existing is None:
                raise NotFoundError(f"User '{user_id}' not found.")
            updated = self._directory.update(user_id, fields)
            try:
                if updated.username != existing.username:
                    self._credentials.rename(existing.username, updated.username, password)
                elif password is not None:
                    self._credentials.set(updated.username, password)
            except Exception:
                try:
                    self._directory.restore(existing)
                except StorageUnavailableError:
                    logger.exception(
                        "Rollback failed after credential write error; user id=%s was modified",
                        user_id,
                    )
                raise
        logger.info("User updated: id=%s by=%s", user_id, actor.username)
        return updated

    def delete_user(self, session_id: str, user_id: str) -> None:
        actor = self._require_action(session_id, ACTION_DELETE_USER)
        with self._write_lock:
            user = self._directory.find_by_id(user_id)
            if user is None:
                raise NotFoundError(f"User '{user_id}' not found.")
            removed_hash = self._credentials.remove(user.username)
            try:
                self._directory.delete(user_id)
            except Exception:
                if removed_hash is not None:
                    try:
                        self._credentials.restore_hash(user.username, removed_hash)
                    except StorageUnavailableError:
                        logger.exception(
                            "Rollback failed after directory write error; user id=%s lost its credential",
                            user_id,
                        )
                raise
        logger.info("User deleted: id=%s username=%s by=%s", user_id, user.username, actor.username)

    # ── Session persistence ─────────────────────────────────────────
    def _load_session_index(self) -> list[str]:
        raw = self._store.get(AUTH_SESSIONS_KEY)
        if raw is None:
            return []
        try:
            return [str(sid) for sid in json.loads(raw)]
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
            raise StorageUnavailableError("Stored session index is invalid.", cause=e) from e

    def _save_session_index(self, session_ids: list[str]) -> None:
        self._store.put(AUTH_SESSIONS_KEY, json.dumps(session_ids).encode("utf-8"))

    def _persist_session(self, session: Session) -> None:
        with self._session_index_lock:
            self._store.put(session_user_key(session.session_id), session.model_dump_json().encode("utf-8"))
            self._store.put(session_status_key(session.session_id), _AUTHENTICATED)
            index = self._load_session_index()
            if session.session_id not in index:
                index.append(session.session_id)
                self._save_session_index(index)

    def _purge_session(self, session_id: str) -> None:
        with self._session_index_lock:
            self._store.delete(session_user_key(session_id))
            self._store.delete(session_status_key(session_id))
            index = self._load_session_index()
            if session_id in index:
                index.remove(session_id)
                self._save_session_index(index)

    def _load_persisted_sessions(self) -> list[Session]:
        sessions: list[Session] = []
        for session_id in self._load_session_index():
            if self._store.get(session_status_key(session_id)) != _AUTHENTICATED:
                continue
            raw = self._store.get(session_user_key(session_id))
            if raw is None:
                continue
            try:
                sessions.append(Session.model_validate_json(raw))
            except ValidationError:
                logger.warning("Discarding unreadable session snapshot for session %s", session_id[:8])
        return sessions


def build_auth_service(settings: "Settings", store: KeyValueStore | None = None) -> AuthService:
    """Wire the service from settings; store defaults to the configured backend."""
    return AuthService(
        store=store if store is not None else build_store(settings),
        hasher=BcryptHasher(rounds=settings.BCRYPT_ROUNDS),
        login_min_latency_sec=settings.LOGIN_MIN_LATENCY_SEC,
    )
