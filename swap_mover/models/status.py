"""Externally observed status snapshot."""

from typing import Optional
from pydantic import BaseModel, Field

from .common import LogEntry
from .relocation import RelocationOutcome, RelocationState
from .system import SecurityState, Volume


class StatusSnapshot(BaseModel):
    security: SecurityState = Field(default_factory=SecurityState)
    current_location: Optional[Volume] = None
    available_drives: list[Volume] = Field(default_factory=list)
    selected_drive_id: Optional[str] = None
    busy: bool = False
    last_error: Optional[str] = None
    relocation_state: RelocationState = RelocationState.IDLE
    last_outcome: Optional[RelocationOutcome] = None
    logs: list[LogEntry] = Field(default_factory=list)
