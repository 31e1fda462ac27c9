"""Error taxonomy for authentication, authorization and user management."""


class AuthError(Exception):
    """Base for recoverable auth failures; kind is a stable machine-readable tag."""

    kind = "auth_error"
    default_message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthError):
            return NotImplemented
        return self.kind == other.kind and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.kind, self.message))


class InvalidCredentialsError(AuthError):
    """Login failed. Deliberately silent about whether the username or the password was wrong."""

    kind = "invalid_credentials"
    default_message = "Invalid username or password."


class PermissionDeniedError(AuthError):
    kind = "permission_denied"
    default_message = "Permission denied."


class DuplicateUsernameError(AuthError):
    kind = "duplicate_username"
    default_message = "Username already exists."


class NotFoundError(AuthError):
    kind = "not_found"
    default_message = "User not found."


class StorageUnavailableError(AuthError):
    """Raised when the key-value store cannot be read or written. Never retried here."""

    kind = "storage_unavailable"
    default_message = "Storage unavailable."

    def __init__(self, message: str | None = None, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class SessionRevokedError(AuthError):
    """A logout for the same session completed while the login was still in flight."""

    kind = "session_revoked"
    default_message = "Session was logged out during login."


class CatalogError(Exception):
    """Raised at startup when the permission catalog is inconsistent."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
