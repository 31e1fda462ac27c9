"""User management endpoints; permission enforcement lives in the auth service."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from app.api.v1.auth import auth_error_to_http, get_auth_service, require_session_id
from app.schemas.auth import User, UserCreate, UsersListResponse, UserUpdate
from app.services.auth_service import AuthService
from app.services.errors import AuthError

router = APIRouter()


@router.get("", response_model=UsersListResponse)
def list_users(
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str, Depends(require_session_id)],
) -> UsersListResponse:
    """List the directory (roles that can reach /users)."""
    try:
        return UsersListResponse(users=service.list_users(session_id))
    except AuthError as e:
        raise auth_error_to_http(e) from e


@router.get("/{user_id}", response_model=User)
def get_user(
    user_id: str,
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str, Depends(require_session_id)],
) -> User:
    try:
        return service.get_user(session_id, user_id)
    except AuthError as e:
        raise auth_error_to_http(e) from e


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str, Depends(require_session_id)],
) -> User:
    """Create a user and its credential together (requires add-user)."""
    try:
        return service.add_user(session_id, body)
    except AuthError as e:
        raise auth_error_to_http(e) from e


@router.patch("/{user_id}", response_model=User)
def update_user(
    user_id: str,
    body: UserUpdate,
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str, Depends(require_session_id)],
) -> User:
    """Merge the given fields into the user (requires edit-user)."""
    try:
        return service.update_user(session_id, user_id, body)
    except AuthError as e:
        raise auth_error_to_http(e) from e


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    service: Annotated[AuthService, Depends(get_auth_service)],
    session_id: Annotated[str, Depends(require_session_id)],
) -> Response:
    """Delete the user and its credential together (requires delete-user)."""
    try:
        service.delete_user(session_id, user_id)
    except AuthError as e:
        raise auth_error_to_http(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
