"""ORM model backing the SQL key-value store."""

from sqlalchemy import Column, DateTime, LargeBinary, String, func

from app.models.base import Base


class KeyValueEntry(Base):
    """
    One persisted value (serialized directory, credentials, or session snapshot).

    Values are opaque bytes; the auth services own their encoding.
    """

    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
