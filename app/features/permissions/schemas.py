"""
Pydantic schemas for permission management.

Request and response models for permissions, roles and role-permission
assignments.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.permissions.models import NAME_MAX_LENGTH, DESCRIPTION_MAX_LENGTH


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError('Name must not be blank')
    return v


def _clean_description(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    return v.strip() or None


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionBase(BaseModel):
    """Base permission schema."""
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH, description="Unique permission name")
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH, description="Permission description")


class PermissionCreate(PermissionBase):
    """Schema for creating a new permission."""

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator('description')
    @classmethod
    def description_blank_as_none(cls, v: Optional[str]) -> Optional[str]:
        return _clean_description(v)


class PermissionUpdate(BaseModel):
    """Schema for updating a permission."""
    name: Optional[str] = Field(None, min_length=1, max_length=NAME_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)

    @field_validator('description')
    @classmethod
    def description_blank_as_none(cls, v: Optional[str]) -> Optional[str]:
        return _clean_description(v)


class PermissionResponse(PermissionBase):
    """Schema for permission response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH, description="Unique role name")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _clean_name(v)


class RoleUpdate(BaseModel):
    """Schema for renaming a role."""
    name: Optional[str] = Field(None, min_length=1, max_length=NAME_MAX_LENGTH)

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissionCount(RoleResponse):
    """Role list entry with the number of assigned permissions."""
    permission_count: int = 0


class RoleWithPermissions(RoleResponse):
    """Schema for role with permissions."""
    permissions: List[PermissionResponse] = []


class PermissionWithRoles(PermissionResponse):
    """Schema for permission with the roles it is granted to."""
    roles: List[RoleResponse] = []


# ============================================================================
# Assignment Schemas
# ============================================================================

class AssignPermissionToRole(BaseModel):
    """Schema for assigning a permission to a role."""
    permission_id: str = Field(..., description="Permission ID")


class RolePermissionPair(BaseModel):
    """One role-permission assignment."""
    role_id: str
    permission_id: str

    model_config = ConfigDict(from_attributes=True)


class AssignmentToggle(BaseModel):
    """Matrix checkbox change: assign when checked, remove when unchecked."""
    role_id: str = Field(..., description="Role ID")
    permission_id: str = Field(..., description="Permission ID")
    assigned: bool = Field(..., description="Desired state of the assignment")


class AssignmentResult(BaseModel):
    """Result of an assign/remove request."""
    role_id: str
    permission_id: str
    assigned: bool
    changed: bool = Field(..., description="False when the assignment was already in the requested state")
    message: str


class AssignmentMatrix(BaseModel):
    """Everything the role-permission matrix needs in one response."""
    roles: List[RoleResponse] = []
    permissions: List[PermissionResponse] = []
    assignments: Dict[str, List[str]] = Field(default_factory=dict, description="role_id -> permission_ids")


class RbacStats(BaseModel):
    """Dashboard totals."""
    total_roles: int
    total_permissions: int
    total_assignments: int
