"""System Integrity Protection gate."""

from datetime import datetime

from ..errors import CommandExecutionFailedError, SwapOperationError
from ..models.system import SecurityState
from ..privileged import PrivilegedExecutor
from ..utils.macos_commands import csrutil_status
from .status_model import StatusModel


class SecurityGate:
    """Remembers only the last ``csrutil status`` result."""

    def __init__(self, executor: PrivilegedExecutor, status: StatusModel):
        self.executor = executor
        self.status = status
        self._state = SecurityState()

    @property
    def state(self) -> SecurityState:
        return self._state.model_copy()

    @property
    def is_open(self) -> bool:
        return self._state.sip_disabled

    async def check(self) -> SecurityState:
        try:
            result = await csrutil_status(self.executor)
            if not result.ok:
                raise CommandExecutionFailedError(result.stderr or "csrutil status failed")
        except SwapOperationError as e:
            message = f"Failed to check SIP status: {e.message}"
            self.status.error(message)
            self.status.update(last_error=message)
            return self.state

        self._state = SecurityState(
            sip_disabled="disabled" in result.stdout.lower(),
            checked_at=datetime.now(),
        )
        self.status.info(
            "SIP is disabled" if self._state.sip_disabled else "SIP is enabled"
        )
        self.status.update(security=self.state)
        return self.state
