"""Relocation-related models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from ..errors import ErrorKind
from .system import Volume


class RelocationState(str, Enum):
    IDLE = "idle"
    VALIDATING_PRECONDITIONS = "validating_preconditions"
    ACQUIRING_PRIVILEGES = "acquiring_privileges"
    DISABLING_ACCOUNTING = "disabling_accounting"
    RELOCATING = "relocating"
    REENABLING_ACCOUNTING = "reenabling_accounting"
    COMPLETED = "completed"
    FAILED = "failed"


class RelocationRequest(BaseModel):
    destination: Optional[Volume] = None


class RelocationOutcome(BaseModel):
    success: bool
    state: RelocationState
    error_kind: Optional[ErrorKind] = None
    detail: str = ""
    destination_id: Optional[str] = None
    rolled_back: bool = False
    finished_at: datetime = Field(default_factory=datetime.now)
