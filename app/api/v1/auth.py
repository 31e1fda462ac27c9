"""Login/logout, session lookup and permission check endpoints, plus shared auth dependencies."""

from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import get_settings
from app.core.security import create_access_token, decode_access_token
from app.schemas.auth import (
    LoginRequest,
    LogoutResponse,
    PermissionCheckResponse,
    TokenResponse,
    User,
)
from app.services.auth_service import AuthService
from app.services.errors import AuthError
from app.services.session import new_session_id

router = APIRouter()
security = HTTPBearer(auto_error=False)

# HTTP status per error kind; unknown kinds fall back to 400.
_STATUS_BY_KIND = {
    "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
    "session_revoked": status.HTTP_401_UNAUTHORIZED,
    "permission_denied": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "duplicate_username": status.HTTP_409_CONFLICT,
    "storage_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def auth_error_to_http(exc: AuthError) -> HTTPException:
    """Structured error body: {"detail": {"kind": ..., "message": ...}}."""
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST),
        detail={"kind": exc.kind, "message": exc.message},
    )


def get_auth_service(request: Request) -> AuthService:
    """Dependency: the service created by the application lifespan."""
    return request.app.state.auth_service


def get_session_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str | None:
    """Dependency: session id from the Bearer JWT, or None for anonymous callers."""
    if credentials is None:
        return None
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


def require_session_id(
    session_id: Annotated[str | None, Depends(get_session_id)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> str:
    """Dependency: require a live session. Raises 401 if missing, invalid, or logged out."""
    if session_id is None or service.current(session_id) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session_id


@router.post("", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str | None, Depends(get_session_id)],
) -> TokenResponse:
    """
    Authenticate with username and password; returns a JWT bound to a new or existing session.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    sid = session_id or new_session_id()
    try:
        user = await service.login(sid, body.username, body.password)
    except AuthError as e:
        raise auth_error_to_http(e) from e
    token = create_access_token(sub=sid, role=user.role.value)
    return TokenResponse(
        access_token=token,
        token_type="bearer",
        redirect_to=get_settings().LOGIN_REDIRECT_PATH,
        user=user,
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str | None, Depends(get_session_id)],
) -> LogoutResponse:
    """End the session. Succeeds for anonymous callers too."""
    if session_id is not None:
        try:
            service.logout(session_id)
        except AuthError as e:
            raise auth_error_to_http(e) from e
    return LogoutResponse(message="Logged out", redirect_to=get_settings().LOGOUT_REDIRECT_PATH)


@router.get("/me", response_model=User)
def read_current_user(
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str, Depends(require_session_id)],
) -> User:
    """Return the identity snapshot of the current session."""
    user = service.current(session_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


@router.get("/permissions/routes", response_model=PermissionCheckResponse)
def check_route(
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str | None, Depends(get_session_id)],
    path: Annotated[str, Query(min_length=1, max_length=2048)],
) -> PermissionCheckResponse:
    """Whether the caller may reach a route; anonymous callers get false, not an error."""
    allowed = session_id is not None and service.can_reach_route(session_id, path)
    return PermissionCheckResponse(allowed=allowed)


@router.get("/permissions/actions/{action}", response_model=PermissionCheckResponse)
def check_action(
    action: str,
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str | None, Depends(get_session_id)],
) -> PermissionCheckResponse:
    """Whether the caller may perform a named action; unknown actions are denied."""
    allowed = session_id is not None and service.can_perform(session_id, action)
    return PermissionCheckResponse(allowed=allowed)
