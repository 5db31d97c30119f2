"""Move, create or relink the swap file on the destination volume."""

from typing import Optional

from ..config import Settings, settings as default_settings
from ..models.system import Volume
from ..privileged import PrivilegedExecutor
from ..utils.macos_commands import (
    copy_file,
    create_symlink,
    file_exists,
    make_directory,
    regenerate_swap_file,
    remove_file,
    set_swap_permissions,
    zero_fill,
)


class RelocationEngine:
    """Runs the file-level sub-steps of a relocation, one elevated command each.

    The first failing command raises and nothing after it runs; restoring swap
    accounting is the caller's job.
    """

    def __init__(self, executor: PrivilegedExecutor, config: Optional[Settings] = None):
        self.executor = executor
        self.settings = config or default_settings
        self.status = executor.status

    @property
    def swap_path(self) -> str:
        return str(self.settings.swap_file_path)

    async def relocate(self, destination: Volume, current_host: Optional[Volume]) -> bool:
        """Returns False when there was nothing to do."""
        if current_host is not None and current_host.id == destination.id:
            self.status.info(f"Swap file is already on {destination.name}, nothing to move")
            return False

        if destination.is_system_volume:
            await self._to_system_volume(current_host)
        else:
            await self._to_volume(destination, current_host)
        return True

    async def _to_system_volume(self, current_host: Optional[Volume]) -> None:
        if current_host is None:
            self.status.info("No existing swap file found, creating a new one on the system volume")
            await self._create_empty(self.swap_path)
            return

        self.status.info("Removing the swap file link")
        await remove_file(self.executor, self.swap_path)
        self.status.info("Recreating the default swap file on the system volume")
        await regenerate_swap_file(self.executor, self.swap_path)

    async def _to_volume(self, destination: Volume, current_host: Optional[Volume]) -> None:
        target = destination.swap_target_path
        target_dir = target.rsplit("/", 1)[0]

        self.status.info(f"Creating {target_dir} on {destination.name}")
        await make_directory(self.executor, target_dir)

        if await file_exists(self.executor, target):
            self.status.info(f"Removing existing swap file at {target}")
            await remove_file(self.executor, target)

        if current_host is None:
            self.status.info("No existing swap file found, creating a new one")
            await self._create_empty(target)
            await remove_file(self.executor, self.swap_path, force=True)
        else:
            self.status.info(f"Copying swap file to {target}")
            await copy_file(self.executor, self.swap_path, target)
            await set_swap_permissions(self.executor, target)
            self.status.info(f"Removing original swap file on {current_host.name}")
            await remove_file(self.executor, self.swap_path)

        self.status.info(f"Linking {self.swap_path} -> {target}")
        await create_symlink(self.executor, target, self.swap_path)

        if current_host is not None and not current_host.is_system_volume:
            self.status.info(f"Removing stale swap file on {current_host.name}")
            await remove_file(self.executor, current_host.swap_target_path)

    async def _create_empty(self, path: str) -> None:
        await zero_fill(self.executor, path, self.settings.default_swap_size_mib)
        await set_swap_permissions(self.executor, path)
