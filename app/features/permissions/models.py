"""
Permission and Role models for the RBAC console.

Permissions are named capabilities, roles are named groups of permissions,
and role_permissions is the set of (role, permission) assignments.
"""
from sqlalchemy import String, ForeignKey, Table, Column, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.core.database.base import Base, TimestampMixin, UlidPrimaryKeyMixin, ULID_LENGTH


NAME_MAX_LENGTH = 100
# casefold() can expand a character to up to three
NAME_KEY_MAX_LENGTH = NAME_MAX_LENGTH * 3
DESCRIPTION_MAX_LENGTH = 1000


def normalize_name(name: str) -> str:
    """Key under which names are unique and matched: "Ärzte" and "ÄRZTE" collide."""
    return name.casefold()


# ============================================================================
# Association Table
# ============================================================================

# Composite primary key makes the relation a set: one row per pair
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(ULID_LENGTH), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(ULID_LENGTH), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


# ============================================================================
# Core Models
# ============================================================================

class NamedMixin:
    """
    Display name plus its normalized key.

    name_key is kept in sync on every assignment to name and carries the
    unique index.
    """
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False, index=True)
    name_key: Mapped[str] = mapped_column(String(NAME_KEY_MAX_LENGTH), unique=True, nullable=False)

    @validates("name")
    def _sync_name_key(self, _key: str, value: str) -> str:
        self.name_key = normalize_name(value)
        return value


class Permission(Base, UlidPrimaryKeyMixin, NamedMixin, TimestampMixin):
    """
    A named capability that can be granted to roles.

    Examples: "manage settings", "view reports", "edit articles"
    """
    __tablename__ = "permissions"

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, name={self.name!r})>"


class Role(Base, UlidPrimaryKeyMixin, NamedMixin, TimestampMixin):
    """
    A named group of permissions.

    Examples: "Administrator", "Content Editor", "Support Agent"
    """
    __tablename__ = "roles"

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r})>"
