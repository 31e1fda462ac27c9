"""Pydantic request/response schemas."""

from app.schemas.auth import (
    LoginRequest,
    LogoutResponse,
    PermissionCheckResponse,
    Role,
    Session,
    TokenResponse,
    User,
    UserCreate,
    UserProfile,
    UsersListResponse,
    UserUpdate,
)
from app.schemas.health import HealthResponse

__all__ = [
    "HealthResponse",
    "LoginRequest",
    "LogoutResponse",
    "PermissionCheckResponse",
    "Role",
    "Session",
    "TokenResponse",
    "User",
    "UserCreate",
    "UserProfile",
    "UserUpdate",
    "UsersListResponse",
]
