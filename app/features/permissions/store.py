"""
Persistence boundary for the RBAC graph.

RbacStore is the interface the mutator, the command orchestrator and the
routes depend on. SqlAlchemyRbacStore implements it over an AsyncSession and
classifies database failures into the RBAC error taxonomy.
"""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select, delete, insert, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.exceptions import (
    DuplicateAssignmentError,
    DuplicateNameError,
    InvalidNameError,
    RbacError,
    StoreError,
)
from app.features.permissions.models import (
    NAME_MAX_LENGTH,
    Permission,
    Role,
    normalize_name,
    role_permissions,
)
from app.features.permissions.schemas import (
    PermissionResponse,
    RolePermissionPair,
    RoleResponse,
)
from app.utils import get_logger


log = get_logger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"
_UNIQUE_VIOLATION_MARKERS = ("unique constraint", "duplicate key")


class RbacStore(Protocol):
    """Operations the RBAC engine needs from a data store."""

    async def list_permissions(self, search: Optional[str] = None) -> List[PermissionResponse]:
        """Return permissions ordered by name."""

    async def get_permission(self, permission_id: str) -> Optional[PermissionResponse]:
        """Return a permission by ID, or None."""

    async def create_permission(self, name: str, description: Optional[str] = None) -> PermissionResponse:
        """Insert a permission. Raises InvalidNameError or DuplicateNameError."""

    async def update_permission(self, permission_id: str, changes: Dict[str, Any]) -> Optional[PermissionResponse]:
        """Apply changes to a permission. None if it does not exist."""

    async def delete_permission(self, permission_id: str) -> bool:
        """Delete a permission and its assignments. False if it did not exist."""

    async def list_roles(self, search: Optional[str] = None) -> List[RoleResponse]:
        """Return roles ordered by name."""

    async def get_role(self, role_id: str) -> Optional[RoleResponse]:
        """Return a role by ID, or None."""

    async def create_role(self, name: str) -> RoleResponse:
        """Insert a role. Raises InvalidNameError or DuplicateNameError."""

    async def update_role(self, role_id: str, changes: Dict[str, Any]) -> Optional[RoleResponse]:
        """Apply changes to a role. None if it does not exist."""

    async def delete_role(self, role_id: str) -> bool:
        """Delete a role and its assignments. False if it did not exist."""

    async def list_role_permissions(self) -> List[RolePermissionPair]:
        """Return every (role, permission) pair."""

    async def add_role_permission(self, role_id: str, permission_id: str) -> None:
        """Insert a pair. Raises DuplicateAssignmentError when it already exists."""

    async def remove_role_permission(self, role_id: str, permission_id: str) -> bool:
        """Delete a pair. False if it did not exist."""


def is_unique_violation(exc: IntegrityError) -> bool:
    """
    True when an IntegrityError comes from a unique/primary key constraint.

    asyncpg exposes SQLSTATE on the driver exception; SQLite only reports it
    in the message ("UNIQUE constraint failed: ...").
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    message = str(orig).lower()
    return any(marker in message for marker in _UNIQUE_VIOLATION_MARKERS)


class SqlAlchemyRbacStore:
    """
    RbacStore backed by SQLAlchemy.

    Every write method is one unit of work: it commits on success and rolls
    back before raising.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def list_permissions(self, search: Optional[str] = None) -> List[PermissionResponse]:
        stmt = select(Permission).order_by(Permission.name)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(Permission.name.ilike(pattern), Permission.description.ilike(pattern)))
        result = await self._read(stmt, "list_permissions")
        return [PermissionResponse.model_validate(p) for p in result.scalars().all()]

    async def get_permission(self, permission_id: str) -> Optional[PermissionResponse]:
        result = await self._read(select(Permission).where(Permission.id == permission_id), "get_permission")
        permission = result.scalars().first()
        return PermissionResponse.model_validate(permission) if permission else None

    async def create_permission(self, name: str, description: Optional[str] = None) -> PermissionResponse:
        await self._ensure_name_available(Permission, "permission", name)
        db_permission = Permission(name=name, description=description)
        async with self._write("create_permission", DuplicateNameError("permission", name)):
            self.db.add(db_permission)
        await self.db.refresh(db_permission)
        log.info("Created permission %s (%s)", db_permission.name, db_permission.id)
        return PermissionResponse.model_validate(db_permission)

    async def update_permission(self, permission_id: str, changes: Dict[str, Any]) -> Optional[PermissionResponse]:
        result = await self._read(select(Permission).where(Permission.id == permission_id), "update_permission")
        db_permission = result.scalars().first()
        if db_permission is None:
            return None

        new_name = changes.get("name")
        if new_name is not None and new_name != db_permission.name:
            await self._ensure_name_available(Permission, "permission", new_name, exclude_id=permission_id)

        async with self._write("update_permission", DuplicateNameError("permission", new_name or db_permission.name)):
            for key, value in changes.items():
                setattr(db_permission, key, value)
        await self.db.refresh(db_permission)
        log.info("Updated permission %s: %s", permission_id, sorted(changes))
        return PermissionResponse.model_validate(db_permission)

    async def delete_permission(self, permission_id: str) -> bool:
        async with self._write("delete_permission"):
            await self.db.execute(delete(role_permissions).where(role_permissions.c.permission_id == permission_id))
            result = await self.db.execute(delete(Permission).where(Permission.id == permission_id))
        deleted = result.rowcount > 0
        if deleted:
            log.info("Deleted permission %s", permission_id)
        return deleted

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def list_roles(self, search: Optional[str] = None) -> List[RoleResponse]:
        stmt = select(Role).order_by(Role.name)
        if search:
            stmt = stmt.where(Role.name.ilike(f"%{search.strip()}%"))
        result = await self._read(stmt, "list_roles")
        return [RoleResponse.model_validate(r) for r in result.scalars().all()]

    async def get_role(self, role_id: str) -> Optional[RoleResponse]:
        result = await self._read(select(Role).where(Role.id == role_id), "get_role")
        role = result.scalars().first()
        return RoleResponse.model_validate(role) if role else None

    async def create_role(self, name: str) -> RoleResponse:
        await self._ensure_name_available(Role, "role", name)
        db_role = Role(name=name)
        async with self._write("create_role", DuplicateNameError("role", name)):
            self.db.add(db_role)
        await self.db.refresh(db_role)
        log.info("Created role %s (%s)", db_role.name, db_role.id)
        return RoleResponse.model_validate(db_role)

    async def update_role(self, role_id: str, changes: Dict[str, Any]) -> Optional[RoleResponse]:
        result = await self._read(select(Role).where(Role.id == role_id), "update_role")
        db_role = result.scalars().first()
        if db_role is None:
            return None

        new_name = changes.get("name")
        if new_name is not None and new_name != db_role.name:
            await self._ensure_name_available(Role, "role", new_name, exclude_id=role_id)

        async with self._write("update_role", DuplicateNameError("role", new_name or db_role.name)):
            for key, value in changes.items():
                setattr(db_role, key, value)
        await self.db.refresh(db_role)
        log.info("Updated role %s: %s", role_id, sorted(changes))
        return RoleResponse.model_validate(db_role)

    async def delete_role(self, role_id: str) -> bool:
        async with self._write("delete_role"):
            await self.db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
            result = await self.db.execute(delete(Role).where(Role.id == role_id))
        deleted = result.rowcount > 0
        if deleted:
            log.info("Deleted role %s", role_id)
        return deleted

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    async def list_role_permissions(self) -> List[RolePermissionPair]:
        stmt = select(role_permissions.c.role_id, role_permissions.c.permission_id)
        result = await self._read(stmt, "list_role_permissions")
        return [RolePermissionPair(role_id=row.role_id, permission_id=row.permission_id) for row in result]

    async def add_role_permission(self, role_id: str, permission_id: str) -> None:
        duplicate = DuplicateAssignmentError(role_id, permission_id)
        async with self._write("add_role_permission", duplicate):
            await self.db.execute(insert(role_permissions).values(role_id=role_id, permission_id=permission_id))
        log.info("Assigned permission %s to role %s", permission_id, role_id)

    async def remove_role_permission(self, role_id: str, permission_id: str) -> bool:
        stmt = delete(role_permissions).where(
            role_permissions.c.role_id == role_id,
            role_permissions.c.permission_id == permission_id,
        )
        async with self._write("remove_role_permission"):
            result = await self.db.execute(stmt)
        removed = result.rowcount > 0
        if removed:
            log.info("Removed permission %s from role %s", permission_id, role_id)
        return removed

    # ------------------------------------------------------------------
    # Read models for the console pages
    # ------------------------------------------------------------------

    async def list_permissions_for_role(self, role_id: str) -> List[PermissionResponse]:
        stmt = (
            select(Permission)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .where(role_permissions.c.role_id == role_id)
            .order_by(Permission.name)
        )
        result = await self._read(stmt, "list_permissions_for_role")
        return [PermissionResponse.model_validate(p) for p in result.scalars().all()]

    async def list_roles_for_permission(self, permission_id: str) -> List[RoleResponse]:
        stmt = (
            select(Role)
            .join(role_permissions, role_permissions.c.role_id == Role.id)
            .where(role_permissions.c.permission_id == permission_id)
            .order_by(Role.name)
        )
        result = await self._read(stmt, "list_roles_for_permission")
        return [RoleResponse.model_validate(r) for r in result.scalars().all()]

    async def count_permissions_by_role(self) -> Dict[str, int]:
        stmt = (
            select(role_permissions.c.role_id, func.count())
            .group_by(role_permissions.c.role_id)
        )
        result = await self._read(stmt, "count_permissions_by_role")
        return {role_id: count for role_id, count in result.all()}

    async def count_all(self) -> Dict[str, int]:
        counts = {}
        for key, table in (("roles", Role.__table__), ("permissions", Permission.__table__), ("assignments", role_permissions)):
            result = await self._read(select(func.count()).select_from(table), "count_all")
            counts[key] = result.scalar_one()
        return counts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _ensure_name_available(self, model, entity: str, name: str, exclude_id: Optional[str] = None) -> None:
        """
        Length check, then a collision check on the normalized key, matching
        how names are resolved. Runs before every insert or rename.
        """
        if not name or len(name) > NAME_MAX_LENGTH:
            raise InvalidNameError(entity, name, NAME_MAX_LENGTH)

        stmt = select(model).where(model.name_key == normalize_name(name))
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        result = await self._read(stmt, f"check_{entity}_name")
        existing = result.scalars().first()
        if existing is not None:
            log.debug("%s name %r collides with %r", entity, name, existing.name)
            raise DuplicateNameError(entity, existing.name)

    async def _read(self, stmt, operation: str):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            log.error("Store read %s failed: %s", operation, e)
            raise StoreError(f"Failed to {operation.replace('_', ' ')}", operation) from e

    @asynccontextmanager
    async def _write(self, operation: str, on_unique_violation: Optional[RbacError] = None) -> AsyncIterator[None]:
        """
        Run the enclosed statements and commit.

        A unique violation becomes on_unique_violation when given; every
        other database failure becomes StoreError.
        """
        try:
            yield
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if on_unique_violation is not None and is_unique_violation(e):
                log.debug("Store write %s hit a unique constraint", operation)
                raise on_unique_violation from e
            log.error("Store write %s violated a constraint: %s", operation, e.orig)
            raise StoreError(f"Failed to {operation.replace('_', ' ')}", operation) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("Store write %s failed: %s", operation, e)
            raise StoreError(f"Failed to {operation.replace('_', ' ')}", operation) from e
