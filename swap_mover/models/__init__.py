"""Data models."""

from .common import LogEntry, LogKind
from .system import SecurityState, Volume
from .relocation import RelocationOutcome, RelocationRequest, RelocationState
from .status import StatusSnapshot

__all__ = [
    "LogEntry",
    "LogKind",
    "SecurityState",
    "Volume",
    "RelocationOutcome",
    "RelocationRequest",
    "RelocationState",
    "StatusSnapshot",
]
