"""
Permission management API routes.

Provides endpoints for managing permissions, roles, and their assignments,
including the role-permission matrix and dashboard totals.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status

from app.features.permissions.dependencies import get_rbac_store, get_assignment_mutator
from app.features.permissions.exceptions import DuplicateNameError
from app.features.permissions.mutator import AssignmentMutator
from app.features.permissions.schemas import (
    PermissionCreate,
    PermissionUpdate,
    PermissionResponse,
    PermissionWithRoles,
    RoleCreate,
    RoleUpdate,
    RoleResponse,
    RoleWithPermissions,
    RoleWithPermissionCount,
    AssignPermissionToRole,
    AssignmentToggle,
    AssignmentResult,
    AssignmentMatrix,
    RolePermissionPair,
    RbacStats,
)
from app.features.permissions.store import SqlAlchemyRbacStore
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _get_role_or_404(store: SqlAlchemyRbacStore, role_id: str) -> RoleResponse:
    role = await store.get_role(role_id)
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return role


async def _get_permission_or_404(store: SqlAlchemyRbacStore, permission_id: str) -> PermissionResponse:
    permission = await store.get_permission(permission_id)
    if not permission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")
    return permission


def _conflict(e: DuplicateNameError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)


# ============================================================================
# Permission Routes
# ============================================================================

@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission: PermissionCreate,
    mutator: AssignmentMutator = Depends(get_assignment_mutator),
):
    """Create a new permission."""
    try:
        return await mutator.create_permission(permission.name, permission.description)
    except DuplicateNameError as e:
        raise _conflict(e)


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    search: Optional[str] = None,
    store: SqlAlchemyRbacStore = Depends(get_rbac_store),
):
    """List permissions ordered by name, optionally filtered by name/description."""
    return await store.list_permissions(search)


@router.get("/permissions/{permission_id}", response_model=PermissionWithRoles)
async def get_permission(
    permission_id: str,
    store: SqlAlchemyRbacStore = Depends(get_rbac_store),
):
    """Get a specific permission with the roles it is granted to."""
    permission = await _get_permission_or_404(store, permission_id)
    roles = await store.list_roles_for_permission(permission_id)
    return PermissionWithRoles(**permission.model_dump(), roles=roles)


@router.put("/permissions/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: str,
    permission_update: PermissionUpdate,
    store: SqlAlchemyRbacStore = Depends(get_rbac_store),
):
    """Rename a permission or change its description."""
    update_data = permission_update.model_dump(exclude_unset=True)
    if update_data.get("name", "") is None:
        update_data.pop("name")
    try:
        permission = await store.update_permission(permission_id, update_data)
    except DuplicateNameError as e:
        raise _conflict(e)

    if not permission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")
    return permission


@router.delete("/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: str,
    mutator: AssignmentMutator = Depends(get_assignment_mutator),
):
    """Delete a permission and every assignment that mentions it."""
    if not await mutator.delete_permission(permission_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")
    return None


# ============================================================================
# Role Routes
# ============================================================================

@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    mutator: AssignmentMutator = Depends(get_assignment_mutator),
):
    """Create a new role."""
    try:
        return await mutator.create_role(role.name)
    except DuplicateNameError as e:
        raise _conflict(e)


@router.get("/roles", response_model=List[RoleWithPermissionCount])
async def list_roles(
    search: Optional[str] = None,
    store: SqlAlchemyRbacStore = Depends(get_rbac_store),
):
    """List roles ordered by name, with how many permissions each has."""
    roles = await store.list_roles(search)
    counts = await store.count_permissions_by_role()
    return [
        RoleWithPermissionCount(**role.model_dump(), permission_count=counts.get(role.id, 0))
        for role in roles
    ]


@router.get("/roles/{role_id}", response_model=RoleWithPermissions)
async def get_role(
    role_id: str,
    store: SqlAlchemyRbacStore = Depends(get_rbac_store),
):
    """Get a specific role with its permissions."""
    role = await _get_role_or_404(store, role_id)
    permissions = await store.list_permissions_for_role(role_id)
    return RoleWithPermissions(**role.model_dump(), permissions=permissions)


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    store: SqlAlchemyRbacStore = Depends(get_rbac_store),
):
    """Rename a role."""
    update_data = role_update.model_dump(exclude_unset=True, exclude_none=True)
    try:
        role = await store.update_role(role_id, update_data)
    except DuplicateNameError as e:
        raise _conflict(e)

    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return role


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    mutator: AssignmentMutator = Depends(get_assignment_mutator),
):
    """Delete a role and every assignment that mentions it."""
    if not await mutator.delete_role(role_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return None


@router.post("/roles/{role_id}/permissions", response_model=AssignmentResult, status_code=status.HTTP_200_OK)
async def assign_permission_to_role(
    role_id: str,
    assignment: AssignPermissionToRole,
    store: SqlAlchemyRbacStore = Depends(get_rbac_store),
    mutator: AssignmentMutator = Depends(get_assignment_mutator),
):
    """Assign a permission to a role. Assigning twice is not an error."""
    role = await _get_role_or_404(store, role_id)
    permission = await _get_permission_or_404(store, assignment.permission_id)

    changed = await mutator.assign(role.id, permission.id)
    if changed:
        message = f"Permission '{permission.name}' assigned to role '{role.name}'"
    else:
        message = f"Permission '{permission.name}' already assigned to role '{role.name}'"
    return AssignmentResult(
        role_id=role.id, permission_id=permission.id, assigned=True, changed=changed, message=message
    )


@router.delete("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_permission_from_role(
    role_id: str,
    permission_id: str,
    mutator: AssignmentMutator = Depends(get_assignment_mutator),
):
    """Remove a permission from a role. Removing a missing assignment is not an error."""
    await mutator.unassign(role_id, permission_id)
    return None


# ============================================================================
# Assignment Matrix
# ============================================================================

@router.get("/assignments", response_model=List[RolePermissionPair])
async def list_assignments(store: SqlAlchemyRbacStore = Depends(get_rbac_store)):
    """List every role-permission pair."""
    return await store.list_role_permissions()


@router.get("/assignments/matrix", response_model=AssignmentMatrix)
async def get_assignment_matrix(store: SqlAlchemyRbacStore = Depends(get_rbac_store)):
    """Roles, permissions and the current assignment map for the matrix view."""
    roles = await store.list_roles()
    permissions = await store.list_permissions()
    assignments: dict[str, list[str]] = {}
    for pair in await store.list_role_permissions():
        assignments.setdefault(pair.role_id, []).append(pair.permission_id)
    return AssignmentMatrix(roles=roles, permissions=permissions, assignments=assignments)


@router.put("/assignments", response_model=AssignmentResult)
async def toggle_assignment(
    toggle: AssignmentToggle,
    store: SqlAlchemyRbacStore = Depends(get_rbac_store),
    mutator: AssignmentMutator = Depends(get_assignment_mutator),
):
    """Set one matrix cell: assign when checked, remove when unchecked."""
    role = await _get_role_or_404(store, toggle.role_id)
    permission = await _get_permission_or_404(store, toggle.permission_id)

    if toggle.assigned:
        changed = await mutator.assign(role.id, permission.id)
        message = "Permission assigned successfully" if changed else "Permission was already assigned"
    else:
        changed = await mutator.unassign(role.id, permission.id)
        message = "Permission removed successfully" if changed else "Permission was not assigned"

    log.debug("Matrix toggle role=%s permission=%s assigned=%s changed=%s",
              role.id, permission.id, toggle.assigned, changed)
    return AssignmentResult(
        role_id=role.id, permission_id=permission.id, assigned=toggle.assigned, changed=changed, message=message
    )


@router.get("/stats", response_model=RbacStats)
async def get_stats(store: SqlAlchemyRbacStore = Depends(get_rbac_store)):
    """Totals shown on the dashboard."""
    counts = await store.count_all()
    return RbacStats(
        total_roles=counts["roles"],
        total_permissions=counts["permissions"],
        total_assignments=counts["assignments"],
    )
