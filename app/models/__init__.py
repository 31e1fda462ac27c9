"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.kv_entry import KeyValueEntry

__all__ = ["Base", "KeyValueEntry"]
