"""
FastAPI dependencies that bind the RBAC store and mutator to the request's
database session.
"""
from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.mutator import AssignmentMutator
from app.features.permissions.store import SqlAlchemyRbacStore


async def get_rbac_store(db: Annotated[AsyncSession, Depends(get_db)]) -> SqlAlchemyRbacStore:
    """
    Store for the current request.

    Usage:
        @router.get("/roles")
        async def list_roles(store: SqlAlchemyRbacStore = Depends(get_rbac_store)):
            return await store.list_roles()
    """
    return SqlAlchemyRbacStore(db)


async def get_assignment_mutator(
    store: Annotated[SqlAlchemyRbacStore, Depends(get_rbac_store)]
) -> AssignmentMutator:
    return AssignmentMutator(store)
