"""Identity, session and request/response schemas for auth and user management."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, USERNAME_MAX_LEN, USERNAME_MIN_LEN


class Role(str, Enum):
    """Closed set of roles; adding one means updating both permission tables."""

    ADMIN = "admin"
    HR = "hr"
    PLANNER = "planner"
    COMMERCIAL = "commercial"
    PROCUREMENT = "procurement"
    OPERATIONS = "operations"
    MAINTENANCE = "maintenance"


# Profile fields that may be omitted from an update but never set to null.
_REQUIRED_UPDATE_FIELDS = frozenset({"username", "display_name", "email", "role", "password"})


def _strip_username(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("username must be non-empty")
    return stripped


class UserProfile(BaseModel):
    """Directory fields shared by stored users and creation payloads (never the secret)."""

    username: str = Field(..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, description="Unique login name")
    display_name: str = Field(..., min_length=1, max_length=255, description="Name shown in the UI")
    email: str = Field(..., min_length=3, max_length=255, description="Contact email")
    role: Role = Field(..., description="Role determining reachable routes and actions")
    national_id: str | None = Field(default=None, max_length=64, description="National identity card number")
    city: str | None = Field(default=None, max_length=255)
    address: str | None = Field(default=None, max_length=1024)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _strip_username(v)


class User(UserProfile):
    """Authoritative identity record. Immutable: sessions hold it as a snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Opaque id assigned at creation")


class UserCreate(UserProfile):
    """Payload for creating a user: profile plus the initial password."""

    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Initial password")


class UserUpdate(BaseModel):
    """Partial update; only fields explicitly set are merged into the record."""

    model_config = ConfigDict(extra="forbid")

    username: str | None = Field(default=None, min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN)
    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    role: Role | None = None
    national_id: str | None = Field(default=None, max_length=64)
    city: str | None = Field(default=None, max_length=255)
    address: str | None = Field(default=None, max_length=1024)
    password: str | None = Field(default=None, min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str | None) -> str | None:
        return None if v is None else _strip_username(v)

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "UserUpdate":
        for name in _REQUIRED_UPDATE_FIELDS & self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class Session(BaseModel):
    """Live binding between a client context and an identity snapshot."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    identity: User
    established_at: datetime


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str = Field(..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, description="Username")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class TokenResponse(BaseModel):
    """Bearer token (carrying the session id) returned after successful login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    redirect_to: str = Field(..., description="Path the client should navigate to")
    user: User


class LogoutResponse(BaseModel):
    message: str
    redirect_to: str


class UsersListResponse(BaseModel):
    """Response for GET /users."""

    users: list[User]


class PermissionCheckResponse(BaseModel):
    """Outcome of a route or action check; false means render nothing / show denial."""

    allowed: bool
