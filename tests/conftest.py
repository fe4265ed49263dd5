"""Pytest configuration and fixtures for the RBAC console.

HTTP tests use app.main:app with get_db overridden to a fresh in-memory
SQLite database per test. Unit tests use InMemoryRbacStore, a dict-backed
RbacStore that records every write.
"""

import os

# Before app modules read config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "0"

from datetime import datetime, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database.base import generate_ulid
from app.core.database.engine import enable_sqlite_foreign_keys, get_db, init_db
from app.features.permissions.exceptions import (
    DuplicateAssignmentError,
    DuplicateNameError,
    InvalidNameError,
    StoreError,
)
from app.features.permissions.models import NAME_MAX_LENGTH
from app.features.permissions.schemas import (
    PermissionResponse,
    RolePermissionPair,
    RoleResponse,
)
from app.features.permissions.store import SqlAlchemyRbacStore
from app.main import app


class InMemoryRbacStore:
    """RbacStore over plain dicts.

    writes lists the mutating calls in order. Any operation named in
    fail_on raises StoreError instead of running.
    """

    def __init__(self) -> None:
        self.permissions: dict[str, PermissionResponse] = {}
        self.roles: dict[str, RoleResponse] = {}
        self.pairs: set[tuple[str, str]] = set()
        self.writes: list[str] = []
        self.fail_on: set[str] = set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreError(f"Failed to {operation}", operation)

    def _write(self, operation: str) -> None:
        self._check(operation)
        self.writes.append(operation)

    @staticmethod
    def _find(entities, name: str):
        return next((e for e in entities if e.name.casefold() == name.casefold()), None)

    @staticmethod
    def _check_name(entity: str, name: str) -> None:
        if not name or len(name) > NAME_MAX_LENGTH:
            raise InvalidNameError(entity, name, NAME_MAX_LENGTH)

    async def list_permissions(self, search: str | None = None) -> list[PermissionResponse]:
        self._check("list_permissions")
        items = sorted(self.permissions.values(), key=lambda p: p.name)
        if search:
            key = search.casefold()
            items = [p for p in items if key in p.name.casefold() or key in (p.description or "").casefold()]
        return items

    async def get_permission(self, permission_id: str) -> PermissionResponse | None:
        self._check("get_permission")
        return self.permissions.get(permission_id)

    async def create_permission(self, name: str, description: str | None = None) -> PermissionResponse:
        self._write("create_permission")
        self._check_name("permission", name)
        existing = self._find(self.permissions.values(), name)
        if existing:
            raise DuplicateNameError("permission", existing.name)
        now = datetime.now(timezone.utc)
        permission = PermissionResponse(
            id=generate_ulid(), name=name, description=description, created_at=now, updated_at=now
        )
        self.permissions[permission.id] = permission
        return permission

    async def update_permission(self, permission_id: str, changes: dict[str, Any]) -> PermissionResponse | None:
        self._write("update_permission")
        current = self.permissions.get(permission_id)
        if current is None:
            return None
        updated = current.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
        self.permissions[permission_id] = updated
        return updated

    async def delete_permission(self, permission_id: str) -> bool:
        self._write("delete_permission")
        self.pairs = {pair for pair in self.pairs if pair[1] != permission_id}
        return self.permissions.pop(permission_id, None) is not None

    async def list_roles(self, search: str | None = None) -> list[RoleResponse]:
        self._check("list_roles")
        items = sorted(self.roles.values(), key=lambda r: r.name)
        if search:
            items = [r for r in items if search.casefold() in r.name.casefold()]
        return items

    async def get_role(self, role_id: str) -> RoleResponse | None:
        self._check("get_role")
        return self.roles.get(role_id)

    async def create_role(self, name: str) -> RoleResponse:
        self._write("create_role")
        self._check_name("role", name)
        existing = self._find(self.roles.values(), name)
        if existing:
            raise DuplicateNameError("role", existing.name)
        now = datetime.now(timezone.utc)
        role = RoleResponse(id=generate_ulid(), name=name, created_at=now, updated_at=now)
        self.roles[role.id] = role
        return role

    async def update_role(self, role_id: str, changes: dict[str, Any]) -> RoleResponse | None:
        self._write("update_role")
        current = self.roles.get(role_id)
        if current is None:
            return None
        updated = current.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
        self.roles[role_id] = updated
        return updated

    async def delete_role(self, role_id: str) -> bool:
        self._write("delete_role")
        self.pairs = {pair for pair in self.pairs if pair[0] != role_id}
        return self.roles.pop(role_id, None) is not None

    async def list_role_permissions(self) -> list[RolePermissionPair]:
        self._check("list_role_permissions")
        return [RolePermissionPair(role_id=r, permission_id=p) for r, p in sorted(self.pairs)]

    async def add_role_permission(self, role_id: str, permission_id: str) -> None:
        self._write("add_role_permission")
        if (role_id, permission_id) in self.pairs:
            raise DuplicateAssignmentError(role_id, permission_id)
        self.pairs.add((role_id, permission_id))

    async def remove_role_permission(self, role_id: str, permission_id: str) -> bool:
        self._write("remove_role_permission")
        if (role_id, permission_id) not in self.pairs:
            return False
        self.pairs.remove((role_id, permission_id))
        return True


@pytest.fixture
def fake_store() -> InMemoryRbacStore:
    """Empty in-memory store."""
    return InMemoryRbacStore()


@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database with the RBAC tables."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(test_engine)
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    """Database session for store/integration tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> SqlAlchemyRbacStore:
    return SqlAlchemyRbacStore(db_session)


@pytest.fixture
async def client(session_factory) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI), one session per request."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
