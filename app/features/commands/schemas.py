"""
Pydantic schemas for the command endpoints.
"""
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.core import config
from app.features.commands.intents import IntentAction


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    NOT_UNDERSTOOD = "not_understood"
    ROLE_NOT_FOUND = "role_not_found"
    PERMISSION_NOT_FOUND = "permission_not_found"
    DUPLICATE_NAME = "duplicate_name"
    INVALID_NAME = "invalid_name"
    STORE_ERROR = "store_error"


class CommandRequest(BaseModel):
    """Schema for submitting a free-text command."""
    command: str = Field(..., min_length=1, max_length=config.MAX_COMMAND_LENGTH,
                         description='e.g. Create a new role called "Moderator"')

    @field_validator('command')
    @classmethod
    def command_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Command must not be blank')
        return v


class IntentSchema(BaseModel):
    """Parsed intent as returned to the console."""
    action: IntentAction
    role_name: Optional[str] = None
    permission_name: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CommandOutcome(BaseModel):
    """
    Result of executing one command.

    status is the outcome class; message is the text shown to the operator.
    For successes, role_name/permission_name are the stored names and
    changed is False when an assign/remove was already in effect.
    """
    status: OutcomeStatus
    message: str
    command: str
    intent: Optional[IntentSchema] = None
    action: Optional[IntentAction] = None
    role_name: Optional[str] = None
    permission_name: Optional[str] = None
    changed: Optional[bool] = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


class InterpretedCommand(BaseModel):
    """Parse-only preview of a command."""
    command: str
    understood: bool
    intent: Optional[IntentSchema] = None
