from typing import Annotated
from fastapi import Depends

from app.features.commands.orchestrator import CommandOrchestrator
from app.features.commands.parser import IntentParser
from app.features.permissions.dependencies import get_rbac_store, get_assignment_mutator
from app.features.permissions.mutator import AssignmentMutator
from app.features.permissions.store import SqlAlchemyRbacStore


parser = IntentParser()


async def get_command_orchestrator(
    store: Annotated[SqlAlchemyRbacStore, Depends(get_rbac_store)],
    mutator: Annotated[AssignmentMutator, Depends(get_assignment_mutator)],
) -> CommandOrchestrator:
    """Orchestrator bound to the request's store; the parser is shared."""
    return CommandOrchestrator(store, parser=parser, mutator=mutator)
