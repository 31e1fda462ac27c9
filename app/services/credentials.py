"""Credential store: username -> secret hash, persisted apart from the user directory."""

import json

from app.core.security import PasswordHasher
from app.services.errors import StorageUnavailableError
from app.services.storage import USER_PASSWORDS_KEY, KeyValueStore


# Compared against when the username is unknown, so both failure paths cost one hash check.
_DUMMY_SECRET = "not-a-real-password"


class CredentialStore:
    """
    Holds secret hashes only; plain secrets never reach storage.

    Mutations write the full map to the store first and swap the in-memory copy only on
    success, so a failed write leaves both sides unchanged. Callers serialize mutations.
    """

    def __init__(self, store: KeyValueStore, hasher: PasswordHasher) -> None:
        self._store = store
        self._hasher = hasher
        self._hashes: dict[str, str] = {}
        self._dummy_hash: str | None = None

    def load(self) -> None:
        raw = self._store.get(USER_PASSWORDS_KEY)
        if raw is None:
            self._hashes = {}
            return
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageUnavailableError("Stored credentials are not valid JSON.", cause=e) from e
        self._hashes = {str(k): str(v) for k, v in data.items()}

    def verify(self, username: str, secret: str) -> bool:
        """True iff a credential exists for username and secret matches it."""
        hashed = self._hashes.get(username)
        if hashed is None:
            self._hasher.verify(secret, self._get_dummy_hash())
            return False
        return self._hasher.verify(secret, hashed)

    def has(self, username: str) -> bool:
        return username in self._hashes

    def set(self, username: str, secret: str) -> None:
        self._save({**self._hashes, username: self._hasher.hash(secret)})

    def remove(self, username: str) -> str | None:
        """Remove and return the stored hash (None if absent) so callers can roll back."""
        if username not in self._hashes:
            return None
        hashes = dict(self._hashes)
        removed = hashes.pop(username)
        self._save(hashes)
        return removed

    def restore_hash(self, username: str, hashed: str) -> None:
        """Reinstate a hash previously returned by remove()."""
        self._save({**self._hashes, username: hashed})

    def rename(self, old_username: str, new_username: str, secret: str | None = None) -> None:
        """Re-key a credential, optionally replacing the secret, in a single write."""
        hashes = dict(self._hashes)
        hashed = hashes.pop(old_username)
        hashes[new_username] = self._hasher.hash(secret) if secret is not None else hashed
        self._save(hashes)

    def _save(self, hashes: dict[str, str]) -> None:
        self._store.put(USER_PASSWORDS_KEY, json.dumps(hashes, sort_keys=True).encode("utf-8"))
        self._hashes = hashes

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self._hasher.hash(_DUMMY_SECRET)
        return self._dummy_hash
