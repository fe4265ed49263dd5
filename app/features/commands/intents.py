"""
Value objects passed between the command parser, resolver and orchestrator.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from app.features.permissions.schemas import PermissionResponse, RoleResponse


class IntentAction(str, Enum):
    CREATE_PERMISSION = "create_permission"
    CREATE_ROLE = "create_role"
    ASSIGN_PERMISSION = "assign_permission"
    REMOVE_PERMISSION = "remove_permission"
    DELETE_PERMISSION = "delete_permission"
    DELETE_ROLE = "delete_role"


# Actions whose names must match an existing entity
ROLE_REFERENCE_ACTIONS = frozenset({
    IntentAction.ASSIGN_PERMISSION,
    IntentAction.REMOVE_PERMISSION,
    IntentAction.DELETE_ROLE,
})
PERMISSION_REFERENCE_ACTIONS = frozenset({
    IntentAction.ASSIGN_PERMISSION,
    IntentAction.REMOVE_PERMISSION,
    IntentAction.DELETE_PERMISSION,
})


@dataclass(frozen=True)
class Intent:
    """A parsed command. Names keep the casing the operator typed."""
    action: IntentAction
    role_name: Optional[str] = None
    permission_name: Optional[str] = None
    description: Optional[str] = None

    @property
    def references_existing(self) -> bool:
        return self.action in ROLE_REFERENCE_ACTIONS or self.action in PERMISSION_REFERENCE_ACTIONS


@dataclass(frozen=True)
class RbacSnapshot:
    """Roles and permissions read just before resolution, both ordered by name."""
    roles: List[RoleResponse] = field(default_factory=list)
    permissions: List[PermissionResponse] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedIntent:
    intent: Intent
    role: Optional[RoleResponse] = None
    permission: Optional[PermissionResponse] = None
