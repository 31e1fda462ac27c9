"""SQLAlchemy declarative Base for the key-value store tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
