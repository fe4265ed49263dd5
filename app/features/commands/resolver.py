"""
Resolves the names in an intent to existing roles and permissions.
"""
from typing import Optional, Sequence, TypeVar

from app.features.commands.intents import (
    Intent,
    PERMISSION_REFERENCE_ACTIONS,
    RbacSnapshot,
    ResolvedIntent,
    ROLE_REFERENCE_ACTIONS,
)
from app.features.permissions.exceptions import PermissionNotFoundError, RoleNotFoundError
from app.features.permissions.models import normalize_name
from app.features.permissions.schemas import PermissionResponse, RoleResponse


NamedEntity = TypeVar("NamedEntity", RoleResponse, PermissionResponse)


def find_by_name(entities: Sequence[NamedEntity], name: str) -> Optional[NamedEntity]:
    """
    Case-insensitive lookup.

    An exact-case match wins over other case variants; otherwise the first
    match in the given order is returned.
    """
    key = normalize_name(name)
    matches = [entity for entity in entities if normalize_name(entity.name) == key]
    if not matches:
        return None
    for entity in matches:
        if entity.name == name:
            return entity
    return matches[0]


class EntityResolver:

    def resolve(self, intent: Intent, snapshot: RbacSnapshot) -> ResolvedIntent:
        """
        Attach the referenced role and permission to the intent.

        Raises RoleNotFoundError or PermissionNotFoundError with the name as
        typed. The role is checked first. Create intents pass through
        unresolved.
        """
        role = None
        permission = None

        if intent.action in ROLE_REFERENCE_ACTIONS:
            role = find_by_name(snapshot.roles, intent.role_name or "")
            if role is None:
                raise RoleNotFoundError(intent.role_name or "")

        if intent.action in PERMISSION_REFERENCE_ACTIONS:
            permission = find_by_name(snapshot.permissions, intent.permission_name or "")
            if permission is None:
                raise PermissionNotFoundError(intent.permission_name or "")

        return ResolvedIntent(intent=intent, role=role, permission=permission)
