"""FastAPI application entrypoint. No business logic; only wiring, lifespan and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import router as v1_router
from app.core.config import DEFAULT_SEED_PASSWORD, settings
from app.services.auth_service import AuthService, build_auth_service

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    service: AuthService | None = getattr(application.state, "auth_service", None)
    if service is None:
        if settings.STORAGE_BACKEND == "sql" and settings.APP_ENV == "dev":
            from app.core.database import get_engine
            from app.models import Base

            Base.metadata.create_all(bind=get_engine())
        service = build_auth_service(settings)
        application.state.auth_service = service

    seed_password: str | None = None
    if settings.SEED_DEFAULT_USERS:
        seed_password = settings.SEED_DEFAULT_PASSWORD.get_secret_value()
        if settings.APP_ENV == "prod" and seed_password == DEFAULT_SEED_PASSWORD:
            logger.warning(
                "SEED_DEFAULT_USERS is on with the default password; "
                "set SEED_DEFAULT_PASSWORD before exposing this service."
            )
    service.start(seed_password=seed_password)
    yield
    logger.info("Shutdown complete")


def create_app(auth_service: AuthService | None = None) -> FastAPI:
    """Build the app; pass auth_service to reuse a pre-built (e.g. in-memory) service."""
    application = FastAPI(
        title="TMS Auth API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    if auth_service is not None:
        application.state.auth_service = auth_service

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @application.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "TMS Auth API"}

    return application


app = create_app()
