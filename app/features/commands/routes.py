"""
Free-text command API routes.
"""
from typing import List
from fastapi import APIRouter, Depends
from starlette.requests import Request

from app.core.limiter import limit_commands
from app.features.commands.dependencies import get_command_orchestrator
from app.features.commands.orchestrator import CommandOrchestrator
from app.features.commands.parser import get_command_suggestions
from app.features.commands.schemas import CommandRequest, CommandOutcome, InterpretedCommand
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.post("", response_model=CommandOutcome)
@limit_commands
async def execute_command(
    request: Request,
    body: CommandRequest,
    orchestrator: CommandOrchestrator = Depends(get_command_orchestrator),
):
    """
    Execute a command such as 'Give the role "Support Agent" the permission to "view reports"'.

    Failures the operator can act on (not understood, unknown name,
    duplicate name) are reported in the outcome status with HTTP 200.
    """
    outcome = await orchestrator.execute(body.command)
    log.debug("Command outcome %s: %s", outcome.status.value, outcome.message)
    return outcome


@router.post("/interpret", response_model=InterpretedCommand)
async def interpret_command(
    body: CommandRequest,
    orchestrator: CommandOrchestrator = Depends(get_command_orchestrator),
):
    """Show how a command would be understood without running it."""
    return orchestrator.interpret(body.command)


@router.get("/suggestions", response_model=List[str])
async def list_suggestions():
    """Example commands."""
    return get_command_suggestions()
