"""
Assignment mutator: the only writer of the RBAC graph.

Each method is exactly one store call. The mutator's job is to make
assignment toggling idempotent: a duplicate pair on assign and a missing
pair on unassign are both successful no-ops.
"""
from typing import Optional

from app.features.permissions.exceptions import DuplicateAssignmentError
from app.features.permissions.schemas import PermissionResponse, RoleResponse
from app.features.permissions.store import RbacStore
from app.utils import get_logger


log = get_logger(__name__)


class AssignmentMutator:

    def __init__(self, store: RbacStore):
        self.store = store

    async def create_permission(self, name: str, description: Optional[str] = None) -> PermissionResponse:
        """Raises InvalidNameError or DuplicateNameError."""
        return await self.store.create_permission(name, description)

    async def create_role(self, name: str) -> RoleResponse:
        """Raises InvalidNameError or DuplicateNameError."""
        return await self.store.create_role(name)

    async def assign(self, role_id: str, permission_id: str) -> bool:
        """
        Grant a permission to a role.

        Returns True if the pair was inserted, False if it already existed.
        Only DuplicateAssignmentError is downgraded; other store errors
        propagate.
        """
        try:
            await self.store.add_role_permission(role_id, permission_id)
        except DuplicateAssignmentError:
            log.info("Permission %s already assigned to role %s", permission_id, role_id)
            return False
        return True

    async def unassign(self, role_id: str, permission_id: str) -> bool:
        """Returns True if a pair was removed, False if there was none."""
        removed = await self.store.remove_role_permission(role_id, permission_id)
        if not removed:
            log.info("Permission %s was not assigned to role %s", permission_id, role_id)
        return removed

    async def delete_permission(self, permission_id: str) -> bool:
        return await self.store.delete_permission(permission_id)

    async def delete_role(self, role_id: str) -> bool:
        return await self.store.delete_role(role_id)
