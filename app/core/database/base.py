"""
SQLAlchemy declarative base and shared column mixins.

All SQLAlchemy models inherit from Base. Entities get a ULID string primary
key from UlidPrimaryKeyMixin and server-side timestamps from TimestampMixin.
"""
from datetime import datetime
from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from ulid import ULID


ULID_LENGTH = 26


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        class Role(Base, UlidPrimaryKeyMixin, TimestampMixin):
            __tablename__ = "roles"
            name: Mapped[str] = mapped_column(String(100))
    """
    pass


class UlidPrimaryKeyMixin:
    """Adds a sortable 26-character ULID primary key."""
    id: Mapped[str] = mapped_column(String(ULID_LENGTH), primary_key=True, default=generate_ulid)


class TimestampMixin:
    """
    Adds created_at and updated_at, both filled in by the database.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
