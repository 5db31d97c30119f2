"""Core shared models."""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field


class LogKind(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    COMMAND = "command"
    OUTPUT = "output"


class LogEntry(BaseModel):
    kind: LogKind
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def formatted_timestamp(self) -> str:
        return self.timestamp.strftime("%H:%M:%S.%f")[:-3]
