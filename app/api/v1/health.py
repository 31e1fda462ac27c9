"""Health check endpoint with key-value store connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.v1.auth import get_auth_service
from app.core.config import settings
from app.schemas.health import HealthResponse
from app.services.auth_service import AuthService
from app.services.storage import check_store_available

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(service: Annotated[AuthService, Depends(get_auth_service)]) -> HealthResponse:
    """
    Return service health status and storage connectivity.
    Used by load balancers and monitoring.
    """
    storage_status = "connected" if check_store_available(service.store) else "disconnected"

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        storage=storage_status,
        active_sessions=service.sessions.active_count(),
    )
