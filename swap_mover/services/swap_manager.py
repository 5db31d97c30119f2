"""Public entry point: discovery, selection and relocation."""

import asyncio
import logging
from typing import Optional

from ..config import Settings, settings as default_settings
from ..errors import DriveNotFoundError, SwapOperationError
from ..models.relocation import RelocationOutcome, RelocationRequest
from ..models.status import StatusSnapshot
from ..models.system import SecurityState, Volume
from ..privileged import PrivilegedExecutor
from ..utils.permissions import check_swap_directory_access
from .drive_inventory import DriveInventory
from .relocation_manager import RelocationManager
from .security_gate import SecurityGate
from .status_model import StatusModel

logger = logging.getLogger(__name__)


class SwapManager:
    def __init__(
        self,
        config: Optional[Settings] = None,
        status: Optional[StatusModel] = None,
        executor: Optional[PrivilegedExecutor] = None,
    ):
        self.settings = config or default_settings
        self.status = status or StatusModel()
        self.executor = executor or PrivilegedExecutor(self.status, self.settings)
        self.gate = SecurityGate(self.executor, self.status)
        self.inventory = DriveInventory(self.executor, self.status, self.settings)
        self.relocations = RelocationManager(
            self.executor, self.status, self.gate, self.inventory, self.settings,
        )

    def snapshot(self) -> StatusSnapshot:
        return self.status.snapshot()

    async def initialize(self) -> StatusSnapshot:
        """Check access, then SIP and drives concurrently."""
        with self.status.operation():
            if not check_swap_directory_access(self.settings.swap_file_path):
                message = (
                    f"Cannot access {self.settings.swap_file_path.parent}. Run from the "
                    "Applications folder and grant the required permissions."
                )
                self.status.error(message)
                self.status.update(last_error=message)
                return self.snapshot()

            await asyncio.gather(self.check_sip(), self.refresh_drives())
        return self.snapshot()

    async def check_sip(self) -> SecurityState:
        with self.status.operation():
            return await self.gate.check()

    async def refresh_drives(self) -> list[Volume]:
        with self.status.operation():
            try:
                drives = await self.inventory.refresh()
            except SwapOperationError as e:
                self.status.update(last_error=e.message)
                return []
            self._publish_drives(drives)
            return drives

    async def detect_swap_location(self) -> Optional[Volume]:
        """Re-check where the swap file lives without rescanning volumes."""
        with self.status.operation():
            if not self.inventory.volumes:
                try:
                    await self.inventory.refresh()
                except SwapOperationError as e:
                    self.status.update(last_error=e.message)
                    return None
            else:
                await self.inventory.redetect()
            self._publish_drives(self.inventory.selectable)
            return self.inventory.current_host

    def select_drive(self, volume_id: str) -> Volume:
        volume = self.inventory.find(volume_id)
        if volume is None:
            error = DriveNotFoundError(f"No usable drive with id {volume_id}.")
            self.status.warning(error.message)
            raise error
        self.status.update(selected_drive_id=volume.id)
        self.status.info(f"Selected {volume.name} as swap destination")
        return volume

    async def relocate(self, volume_id: Optional[str] = None) -> RelocationOutcome:
        return await self.relocations.relocate(self._request_for(volume_id))

    async def start_relocation(self, volume_id: Optional[str] = None) -> None:
        await self.relocations.start_relocation(self._request_for(volume_id))

    def clear_logs(self) -> None:
        self.status.clear_logs()

    def _request_for(self, volume_id: Optional[str]) -> RelocationRequest:
        if volume_id is None:
            volume_id = self.status.snapshot().selected_drive_id
        destination = None
        if volume_id is not None:
            destination = next((v for v in self.inventory.volumes if v.id == volume_id), None)
        return RelocationRequest(destination=destination)

    def _publish_drives(self, drives: list[Volume]) -> None:
        fields = {
            "available_drives": drives,
            "current_location": self.inventory.current_host,
        }
        selected = self.status.snapshot().selected_drive_id
        if selected is not None and all(d.id != selected for d in drives):
            fields["selected_drive_id"] = None
        self.status.update(**fields)


# Singleton
swap_manager = SwapManager()
