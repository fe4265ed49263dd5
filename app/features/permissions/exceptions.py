"""
Error taxonomy for RBAC mutations and name resolution.

Store implementations classify persistence failures into these classes;
the command orchestrator turns them into outcomes and the HTTP routes into
status codes.
"""
from typing import Any


class RbacError(Exception):
    """
    Base class for all RBAC errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. name, entity).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class DuplicateNameError(RbacError):
    """Raised when a create or rename collides with an existing name."""

    def __init__(self, entity: str, name: str) -> None:
        self.entity = entity
        self.name = name
        super().__init__(
            f'{entity.capitalize()} "{name}" already exists',
            "DUPLICATE_NAME",
            {"entity": entity, "name": name},
        )


class DuplicateAssignmentError(RbacError):
    """Raised by a store when a (role, permission) pair is inserted twice."""

    def __init__(self, role_id: str, permission_id: str) -> None:
        super().__init__(
            "Permission is already assigned to role",
            "DUPLICATE_ASSIGNMENT",
            {"role_id": role_id, "permission_id": permission_id},
        )


class RoleNotFoundError(RbacError):
    """Raised when a role reference does not match any role."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Role "{name}" not found', "ROLE_NOT_FOUND", {"name": name})


class PermissionNotFoundError(RbacError):
    """Raised when a permission reference does not match any permission."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Permission "{name}" not found', "PERMISSION_NOT_FOUND", {"name": name})


class StoreError(RbacError):
    """Any other failure reported by the persistence layer."""

    def __init__(self, message: str = "Storage operation failed", operation: str | None = None) -> None:
        super().__init__(message, "STORE_ERROR", {"operation": operation} if operation else {})


class InvalidNameError(RbacError):
    """Raised when a name is blank or longer than the store accepts."""

    def __init__(self, entity: str, name: str, max_length: int) -> None:
        self.entity = entity
        self.name = name
        super().__init__(
            f"{entity.capitalize()} name must be 1 to {max_length} characters",
            "INVALID_NAME",
            {"entity": entity, "length": len(name), "max_length": max_length},
        )
