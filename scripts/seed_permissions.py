"""
Seed script to populate default permissions and roles.

Run this script after database initialization to create:
- Default console permissions
- Default roles
- Initial role-permission assignments

Existing permissions, roles and assignments are left alone, so the script
can be run repeatedly.

Usage:
    python -m scripts.seed_permissions
"""
import asyncio

from app.core.database.engine import get_db, init_db
from app.features.commands.resolver import find_by_name
from app.features.permissions.exceptions import DuplicateNameError
from app.features.permissions.mutator import AssignmentMutator
from app.features.permissions.schemas import PermissionResponse, RoleResponse
from app.features.permissions.store import SqlAlchemyRbacStore
from app.utils import get_logger, setup_logging


log = get_logger(__name__)


DEFAULT_PERMISSIONS = [
    # Content
    ("view articles", "Read published and draft articles"),
    ("edit articles", "Create and edit articles"),
    ("publish articles", "Publish articles"),
    ("delete articles", "Delete articles"),

    # Reports
    ("view reports", "View dashboards and reports"),
    ("export reports", "Export reports"),

    # User management
    ("view users", "View user accounts"),
    ("manage users", "Create and update user accounts"),
    ("delete users", "Delete user accounts"),

    # Console administration
    ("manage roles", "Create, rename and delete roles"),
    ("manage permissions", "Create, edit and assign permissions"),
    ("manage settings", "Change application settings"),
]


DEFAULT_ROLES = {
    "Administrator": {
        "description": "Full access to everything",
        "permissions": "ALL"  # Special case - gets all permissions
    },
    "Content Editor": {
        "description": "Writes and publishes content",
        "permissions": ["view articles", "edit articles", "publish articles", "view reports"],
    },
    "Support Agent": {
        "description": "Helps users with their accounts",
        "permissions": ["view users", "manage users", "view articles"],
    },
    "Viewer": {
        "description": "Read-only access",
        "permissions": ["view articles", "view reports"],
    },
}


async def seed_permissions(store: SqlAlchemyRbacStore, mutator: AssignmentMutator) -> dict[str, PermissionResponse]:
    """
    Create default permissions.

    Returns:
        Dictionary mapping permission names to permissions
    """
    log.info("Creating default permissions...")
    created = 0

    for name, description in DEFAULT_PERMISSIONS:
        try:
            await mutator.create_permission(name, description)
            created += 1
            log.info("Created permission: %s", name)
        except DuplicateNameError:
            log.debug("Permission '%s' already exists, skipping", name)

    permissions = await store.list_permissions()
    log.info("Created %d permissions (%d total)", created, len(permissions))
    return {p.name: p for p in permissions}


async def seed_roles(store: SqlAlchemyRbacStore, mutator: AssignmentMutator, permissions_map: dict[str, PermissionResponse]):
    """
    Create default roles and assign permissions.

    Args:
        store: RBAC store
        mutator: Assignment mutator
        permissions_map: Dictionary of permission name -> permission
    """
    log.info("Creating default roles...")

    for role_name, role_config in DEFAULT_ROLES.items():
        try:
            role = await mutator.create_role(role_name)
            log.info("Created role '%s'", role_name)
        except DuplicateNameError:
            log.debug("Role '%s' already exists, reusing it", role_name)
            role = find_by_name(await store.list_roles(), role_name)

        if role_config["permissions"] == "ALL":
            wanted: list[PermissionResponse] = list(permissions_map.values())
        else:
            wanted = []
            for perm_name in role_config["permissions"]:
                permission = find_by_name(list(permissions_map.values()), perm_name)
                if permission is None:
                    log.warning("Permission '%s' not found for role '%s'", perm_name, role_name)
                    continue
                wanted.append(permission)

        assigned = 0
        for permission in wanted:
            if await mutator.assign(role.id, permission.id):
                assigned += 1
        log.info("Role '%s' has %d new of %d permissions", role_name, assigned, len(wanted))

    log.info("Default roles created successfully")


async def main():
    """Main function to seed permissions and roles."""
    setup_logging()
    log.info("Starting permission seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        store = SqlAlchemyRbacStore(db)
        mutator = AssignmentMutator(store)

        permissions_map = await seed_permissions(store, mutator)
        await seed_roles(store, mutator, permissions_map)

        log.info("Permission seeding completed successfully!")
        for role_name, role_config in DEFAULT_ROLES.items():
            log.info("  - %s: %s", role_name, role_config["description"])

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
