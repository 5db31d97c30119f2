"""Swap relocation state machine."""

import asyncio
import logging
from typing import Optional

from ..config import Settings, settings as default_settings
from ..errors import (
    CommandExecutionFailedError,
    CommandTimedOutError,
    DriveNotFoundError,
    InsufficientPermissionsError,
    RelocationInProgressError,
    SIPEnabledError,
    SwapOperationError,
    UnknownSwapError,
)
from ..models.relocation import RelocationOutcome, RelocationRequest, RelocationState
from ..models.system import Volume
from ..privileged import PrivilegedExecutor
from ..relocation.engine import RelocationEngine
from ..utils.macos_commands import set_swap_enabled, swap_enabled
from ..utils.permissions import check_sudo_cached
from .drive_inventory import DriveInventory
from .security_gate import SecurityGate
from .status_model import StatusModel

logger = logging.getLogger(__name__)


class RelocationManager:
    """Sequences one relocation at a time.

    idle -> validating_preconditions -> acquiring_privileges ->
    disabling_accounting -> relocating -> reenabling_accounting -> completed,
    or failed from anywhere past validation. Once accounting has been touched,
    a failure before re-enabling first tries to turn swap back on, then
    reports the original error.
    """

    def __init__(
        self,
        executor: PrivilegedExecutor,
        status: StatusModel,
        gate: SecurityGate,
        inventory: DriveInventory,
        config: Optional[Settings] = None,
    ):
        self.executor = executor
        self.status = status
        self.gate = gate
        self.inventory = inventory
        self.settings = config or default_settings
        self.engine = RelocationEngine(executor, self.settings)
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def in_progress(self) -> bool:
        if self._lock.locked():
            return True
        return self._task is not None and not self._task.done()

    async def relocate(self, request: RelocationRequest) -> RelocationOutcome:
        """Run a relocation to completion and return its outcome."""
        if self.in_progress:
            self._reject()
        return await self._run_exclusive(request)

    async def start_relocation(self, request: RelocationRequest) -> None:
        """Kick off a relocation in the background."""
        if self.in_progress:
            self._reject()
        self._task = asyncio.create_task(self._run_exclusive(request))

    async def wait(self) -> Optional[RelocationOutcome]:
        if self._task is None:
            return None
        return await self._task

    async def _run_exclusive(self, request: RelocationRequest) -> RelocationOutcome:
        async with self._lock:
            with self.status.operation():
                return await self._run(request)

    def _reject(self) -> None:
        error = RelocationInProgressError()
        self.status.warning(error.message)
        raise error

    async def _run(self, request: RelocationRequest) -> RelocationOutcome:
        destination = request.destination
        rolled_back = False
        try:
            self._set_state(RelocationState.VALIDATING_PRECONDITIONS)
            destination = self._validate(request)
            current = await self._detect_current_host()
            self.status.info(f"Starting swap relocation to {destination.name}")

            if current is not None and current.id == destination.id:
                self.status.info(f"Swap file is already on {destination.name}, nothing to do")
                return self._complete(destination)

            self._set_state(RelocationState.ACQUIRING_PRIVILEGES)
            await self._acquire_privileges()

            self._set_state(RelocationState.DISABLING_ACCOUNTING)
            try:
                await self._disable_accounting()
                self._set_state(RelocationState.RELOCATING)
                await self.engine.relocate(destination, current)
            except Exception as e:
                self.status.error(f"Relocation step failed: {e}")
                await self._rollback()
                rolled_back = True
                raise

            self._set_state(RelocationState.REENABLING_ACCOUNTING)
            try:
                await self._reenable_accounting()
            finally:
                # The move stands either way.
                await self._refresh_inventory()

            return self._complete(destination)

        except SwapOperationError as e:
            return self._fail(e, destination, rolled_back)
        except Exception as e:
            logger.exception("Unexpected failure during relocation")
            return self._fail(UnknownSwapError(str(e)), destination, rolled_back)

    def _validate(self, request: RelocationRequest) -> Volume:
        if not self.gate.is_open:
            raise SIPEnabledError()
        if request.destination is None:
            raise DriveNotFoundError()
        destination = self.inventory.find(request.destination.id)
        if destination is None:
            raise DriveNotFoundError(f"{request.destination.name} is not an available drive.")
        return destination

    async def _acquire_privileges(self) -> None:
        self.status.info("Checking administrator privileges")
        if await check_sudo_cached(self.executor):
            self.status.info("Administrator privileges already available")
            return
        if not await self.executor.request_authorization():
            raise InsufficientPermissionsError()
        self.status.info("Administrator privileges granted")

    async def _disable_accounting(self) -> None:
        if await swap_enabled(self.executor):
            self.status.info("Swap is enabled, disabling it")
            await set_swap_enabled(self.executor, False)
        else:
            self.status.info("Swap is already disabled")

    async def _detect_current_host(self) -> Optional[Volume]:
        host = await self.inventory.redetect()
        self.status.update(current_location=host)
        return host

    async def _reenable_accounting(self) -> None:
        self.status.info("Re-enabling swap")
        try:
            await set_swap_enabled(self.executor, True)
        except CommandTimedOutError as e:
            raise CommandExecutionFailedError(e.message) from e

    async def _rollback(self) -> None:
        self.status.info("Trying to re-enable swap after the failure")
        try:
            await set_swap_enabled(self.executor, True)
        except Exception as e:
            self.status.error(f"Could not re-enable swap: {e}")

    async def _refresh_inventory(self) -> None:
        try:
            drives = await self.inventory.refresh()
        except SwapOperationError as e:
            self.status.warning(f"Relocated, but could not refresh drives: {e.message}")
            return
        self.status.update(
            available_drives=drives,
            current_location=self.inventory.current_host,
        )

    def _set_state(self, state: RelocationState) -> None:
        logger.debug(f"Relocation state -> {state.value}")
        self.status.update(relocation_state=state)

    def _complete(self, destination: Volume) -> RelocationOutcome:
        outcome = RelocationOutcome(
            success=True,
            state=RelocationState.COMPLETED,
            destination_id=destination.id,
        )
        self.status.info(f"Swap file is now on {destination.name}")
        self.status.update(
            relocation_state=RelocationState.COMPLETED,
            last_outcome=outcome,
            last_error=None,
        )
        return outcome

    def _fail(
        self,
        error: SwapOperationError,
        destination: Optional[Volume],
        rolled_back: bool,
    ) -> RelocationOutcome:
        outcome = RelocationOutcome(
            success=False,
            state=RelocationState.FAILED,
            error_kind=error.kind,
            detail=error.message,
            destination_id=destination.id if destination else None,
            rolled_back=rolled_back,
        )
        self.status.error(error.message)
        self.status.update(
            relocation_state=RelocationState.FAILED,
            last_outcome=outcome,
            last_error=error.message,
        )
        return outcome
