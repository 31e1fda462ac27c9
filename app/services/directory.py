"""User directory: id -> user profile, the authoritative identity record."""

import uuid
from typing import Any

from pydantic import TypeAdapter, ValidationError

from app.schemas.auth import User, UserProfile
from app.services.errors import DuplicateUsernameError, NotFoundError, StorageUnavailableError
from app.services.storage import USERS_STORAGE_KEY, KeyValueStore


_USERS_ADAPTER = TypeAdapter(list[User])

# Fields an update may never touch.
_IMMUTABLE_FIELDS = frozenset({"id"})


class UserDirectory:
    """
    Insertion-ordered user records persisted as one JSON list.

    Same write discipline as the credential store: persist first, then swap the in-memory
    copy. Reads see a consistent snapshot without locking; the auth service serializes writes.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._users: dict[str, User] = {}

    def load(self) -> None:
        raw = self._store.get(USERS_STORAGE_KEY)
        if raw is None:
            self._users = {}
            return
        try:
            users = _USERS_ADAPTER.validate_json(raw)
        except ValidationError as e:
            raise StorageUnavailableError("Stored user directory is invalid.", cause=e) from e
        self._users = {u.id: u for u in users}

    def list_users(self) -> list[User]:
        return list(self._users.values())

    def is_empty(self) -> bool:
        return not self._users

    def find_by_username(self, username: str) -> User | None:
        for user in self._users.values():
            if user.username == username:
                return user
        return None

    def find_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def insert(self, profile: UserProfile) -> User:
        """Store a new record under a freshly generated id."""
        if self.find_by_username(profile.username) is not None:
            raise DuplicateUsernameError(f"Username '{profile.username}' already exists.")
        user_id = self._new_id()
        user = User(id=user_id, **profile.model_dump(include=set(UserProfile.model_fields)))
        self._save({**self._users, user_id: user})
        return user

    def update(self, user_id: str, fields: dict[str, Any]) -> User:
        """Merge fields into the existing record."""
        existing = self._users.get(user_id)
        if existing is None:
            raise NotFoundError(f"User '{user_id}' not found.")
        changes = {k: v for k, v in fields.items() if k not in _IMMUTABLE_FIELDS}
        new_username = changes.get("username")
        if new_username is not None and new_username != existing.username:
            if self.find_by_username(new_username) is not None:
                raise DuplicateUsernameError(f"Username '{new_username}' already exists.")
        updated = User.model_validate({**existing.model_dump(), **changes})
        self._save({**self._users, user_id: updated})
        return updated

    def delete(self, user_id: str) -> User:
        """Remove the record and return it; deleting an absent id is an error."""
        if user_id not in self._users:
            raise NotFoundError(f"User '{user_id}' not found.")
        users = dict(self._users)
        removed = users.pop(user_id)
        self._save(users)
        return removed

    def restore(self, user: User) -> None:
        """Reinstate a record removed by delete(), keeping its id."""
        self._save({**self._users, user.id: user})

    def _new_id(self) -> str:
        # Ids are never reused: uuid4 instead of a count-based id.
        while True:
            user_id = uuid.uuid4().hex
            if user_id not in self._users:
                return user_id

    def _save(self, users: dict[str, User]) -> None:
        payload = _USERS_ADAPTER.dump_json(list(users.values()))
        self._store.put(USERS_STORAGE_KEY, payload)
        self._users = users
