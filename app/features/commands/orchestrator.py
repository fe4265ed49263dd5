"""
Command orchestrator: parse, resolve, mutate, report.

The store, parser, resolver and mutator are passed in, so the same
orchestrator runs against the SQLAlchemy store in the API and against an
in-memory store in tests.
"""
from typing import Awaitable, Callable, Dict, Optional

from app.features.commands.intents import Intent, IntentAction, RbacSnapshot, ResolvedIntent
from app.features.commands.parser import IntentParser
from app.features.commands.resolver import EntityResolver
from app.features.commands.schemas import CommandOutcome, IntentSchema, InterpretedCommand, OutcomeStatus
from app.features.permissions.exceptions import (
    DuplicateNameError,
    InvalidNameError,
    PermissionNotFoundError,
    RoleNotFoundError,
    StoreError,
)
from app.features.permissions.mutator import AssignmentMutator
from app.features.permissions.store import RbacStore
from app.utils import get_logger


log = get_logger(__name__)

NOT_UNDERSTOOD_MESSAGE = "Could not understand the command. Please try a different format."
STORE_ERROR_MESSAGE = "Failed to execute command"

_STATUS_BY_ERROR = {
    RoleNotFoundError: OutcomeStatus.ROLE_NOT_FOUND,
    PermissionNotFoundError: OutcomeStatus.PERMISSION_NOT_FOUND,
    DuplicateNameError: OutcomeStatus.DUPLICATE_NAME,
    InvalidNameError: OutcomeStatus.INVALID_NAME,
}

Handler = Callable[[ResolvedIntent, str], Awaitable[CommandOutcome]]


class CommandOrchestrator:

    def __init__(
        self,
        store: RbacStore,
        parser: Optional[IntentParser] = None,
        resolver: Optional[EntityResolver] = None,
        mutator: Optional[AssignmentMutator] = None,
    ):
        self.store = store
        self.parser = parser or IntentParser()
        self.resolver = resolver or EntityResolver()
        self.mutator = mutator or AssignmentMutator(store)
        self._handlers: Dict[IntentAction, Handler] = {
            IntentAction.CREATE_PERMISSION: self._create_permission,
            IntentAction.CREATE_ROLE: self._create_role,
            IntentAction.ASSIGN_PERMISSION: self._assign_permission,
            IntentAction.REMOVE_PERMISSION: self._remove_permission,
            IntentAction.DELETE_PERMISSION: self._delete_permission,
            IntentAction.DELETE_ROLE: self._delete_role,
        }

    def interpret(self, text: str) -> InterpretedCommand:
        """Parse without touching the store."""
        intent = self.parser.parse(text)
        return InterpretedCommand(
            command=text,
            understood=intent is not None,
            intent=IntentSchema.model_validate(intent) if intent else None,
        )

    async def execute(self, text: str) -> CommandOutcome:
        """
        Run one command to completion.

        Every classified failure is returned as an outcome, never raised.
        Nothing is retried.
        """
        intent = self.parser.parse(text)
        if intent is None:
            log.info("Command not understood: %r", text)
            return CommandOutcome(status=OutcomeStatus.NOT_UNDERSTOOD, message=NOT_UNDERSTOOD_MESSAGE, command=text)

        log.info("Executing %s for command %r", intent.action.value, text)
        try:
            snapshot = await self._snapshot(intent)
            resolved = self.resolver.resolve(intent, snapshot)
            return await self._handlers[intent.action](resolved, text)
        except StoreError:
            log.exception("Command %r failed in the store", text)
            return self._outcome(OutcomeStatus.STORE_ERROR, STORE_ERROR_MESSAGE, text, intent)
        except (RoleNotFoundError, PermissionNotFoundError, DuplicateNameError, InvalidNameError) as e:
            log.info("Command %r rejected: %s", text, e.message)
            return self._outcome(_STATUS_BY_ERROR[type(e)], e.message, text, intent)
        except Exception:
            log.exception("Command %r failed unexpectedly", text)
            return self._outcome(OutcomeStatus.STORE_ERROR, STORE_ERROR_MESSAGE, text, intent)

    async def _snapshot(self, intent: Intent) -> RbacSnapshot:
        if not intent.references_existing:
            return RbacSnapshot()
        roles = await self.store.list_roles()
        permissions = await self.store.list_permissions()
        return RbacSnapshot(roles=roles, permissions=permissions)

    def _outcome(self, status: OutcomeStatus, message: str, text: str, intent: Intent, **fields) -> CommandOutcome:
        return CommandOutcome(
            status=status,
            message=message,
            command=text,
            intent=IntentSchema.model_validate(intent),
            action=intent.action,
            **fields,
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _create_permission(self, resolved: ResolvedIntent, text: str) -> CommandOutcome:
        intent = resolved.intent
        permission = await self.mutator.create_permission(intent.permission_name, intent.description)
        return self._outcome(
            OutcomeStatus.SUCCESS,
            f'Permission "{permission.name}" created successfully',
            text, intent,
            permission_name=permission.name,
        )

    async def _create_role(self, resolved: ResolvedIntent, text: str) -> CommandOutcome:
        intent = resolved.intent
        role = await self.mutator.create_role(intent.role_name)
        return self._outcome(
            OutcomeStatus.SUCCESS,
            f'Role "{role.name}" created successfully',
            text, intent,
            role_name=role.name,
        )

    async def _assign_permission(self, resolved: ResolvedIntent, text: str) -> CommandOutcome:
        role, permission = resolved.role, resolved.permission
        changed = await self.mutator.assign(role.id, permission.id)
        if changed:
            message = f'Assigned permission "{permission.name}" to role "{role.name}"'
        else:
            message = f'Permission "{permission.name}" is already assigned to role "{role.name}"'
        return self._outcome(
            OutcomeStatus.SUCCESS, message, text, resolved.intent,
            role_name=role.name, permission_name=permission.name, changed=changed,
        )

    async def _remove_permission(self, resolved: ResolvedIntent, text: str) -> CommandOutcome:
        role, permission = resolved.role, resolved.permission
        changed = await self.mutator.unassign(role.id, permission.id)
        if changed:
            message = f'Removed permission "{permission.name}" from role "{role.name}"'
        else:
            message = f'Permission "{permission.name}" was not assigned to role "{role.name}"'
        return self._outcome(
            OutcomeStatus.SUCCESS, message, text, resolved.intent,
            role_name=role.name, permission_name=permission.name, changed=changed,
        )

    async def _delete_permission(self, resolved: ResolvedIntent, text: str) -> CommandOutcome:
        permission = resolved.permission
        if not await self.mutator.delete_permission(permission.id):
            # deleted by someone else since the snapshot
            raise PermissionNotFoundError(permission.name)
        return self._outcome(
            OutcomeStatus.SUCCESS,
            f'Permission "{permission.name}" deleted successfully',
            text, resolved.intent,
            permission_name=permission.name,
        )

    async def _delete_role(self, resolved: ResolvedIntent, text: str) -> CommandOutcome:
        role = resolved.role
        if not await self.mutator.delete_role(role.id):
            raise RoleNotFoundError(role.name)
        return self._outcome(
            OutcomeStatus.SUCCESS,
            f'Role "{role.name}" deleted successfully',
            text, resolved.intent,
            role_name=role.name,
        )
