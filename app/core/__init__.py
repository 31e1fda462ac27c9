"""Core app configuration, database and security."""

from app.core.config import get_settings, settings
from app.core.database import get_engine, get_session_factory

__all__ = ["get_settings", "settings", "get_engine", "get_session_factory"]
