"""Typed failures of swap operations."""

from enum import Enum


class ErrorKind(str, Enum):
    SIP_ENABLED = "sip_enabled"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    COMMAND_EXECUTION_FAILED = "command_execution_failed"
    DRIVE_NOT_FOUND = "drive_not_found"
    NO_SWAP_FILE_DETECTED = "no_swap_file_detected"
    COMMAND_TIMED_OUT = "command_timed_out"
    RELOCATION_IN_PROGRESS = "relocation_in_progress"
    UNKNOWN_ERROR = "unknown_error"


class SwapOperationError(Exception):
    """Base class for every failure the engine reports."""

    kind: ErrorKind = ErrorKind.UNKNOWN_ERROR
    default_message: str = "An unknown error occurred."

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.detail:
            return f"{self.default_message} {self.detail}"
        return self.default_message


class SIPEnabledError(SwapOperationError):
    kind = ErrorKind.SIP_ENABLED
    default_message = "System Integrity Protection is enabled. Disable it to continue."


class InsufficientPermissionsError(SwapOperationError):
    kind = ErrorKind.INSUFFICIENT_PERMISSIONS
    default_message = "Insufficient permissions to modify system files."


class CommandExecutionFailedError(SwapOperationError):
    kind = ErrorKind.COMMAND_EXECUTION_FAILED
    default_message = "Command execution failed:"


class DriveNotFoundError(SwapOperationError):
    kind = ErrorKind.DRIVE_NOT_FOUND
    default_message = "No destination drive selected or available."


class NoSwapFileDetectedError(SwapOperationError):
    kind = ErrorKind.NO_SWAP_FILE_DETECTED
    default_message = "No swap file found at the expected location."


class CommandTimedOutError(SwapOperationError):
    kind = ErrorKind.COMMAND_TIMED_OUT
    default_message = "Command timed out:"


class RelocationInProgressError(SwapOperationError):
    kind = ErrorKind.RELOCATION_IN_PROGRESS
    default_message = "A swap relocation is already in progress."


class UnknownSwapError(SwapOperationError):
    kind = ErrorKind.UNKNOWN_ERROR
