"""Detect mounted volumes, classify them, and find the swap file's host."""

import logging
import os
import shutil
from pathlib import Path
from typing import Any, Optional

from ..config import Settings, settings as default_settings
from ..errors import DriveNotFoundError, NoSwapFileDetectedError, SwapOperationError
from ..models.system import Volume
from ..privileged import PrivilegedExecutor
from ..utils.macos_commands import (
    diskutil_info,
    is_regular_file_listing,
    list_swap_file,
    parse_symlink_target,
)
from .status_model import StatusModel

logger = logging.getLogger(__name__)

EXTERNAL_PROTOCOLS = ("USB", "Thunderbolt", "SATA", "SAS", "FireWire", "External")

# Network filesystems, pseudo filesystems and system-pinned containers.
VIRTUAL_FS_MARKERS = (
    "autofs", "nfs", "cifs", "smbfs", "afpfs", "webdav", "ftp",
    "devfs", "vmware", "synthetics",
)


def is_boot_volume(
    info: dict[str, Any],
    mount_point: str,
    name: str,
    root_path: str,
    system_volume_name: str,
) -> bool:
    """Any single signal is enough to call a volume the boot volume."""
    volume_info = info.get("VolumeInfo")
    if isinstance(volume_info, dict) and volume_info.get("BootFromThisVolume") is True:
        return True
    if info.get("BootFromThisVolume") is True:
        return True
    if os.path.normpath(mount_point) == os.path.normpath(root_path):
        return True
    return name == system_volume_name


def is_physical_external(info: dict[str, Any]) -> bool:
    """Block device on an external bus, unless the filesystem is virtual/network."""
    device_node = info.get("DeviceNode")
    if not isinstance(device_node, str):
        return False

    external = False
    if device_node.startswith("/dev/disk"):
        protocol = info.get("Protocol") or info.get("BusProtocol") or ""
        if isinstance(protocol, str) and any(p in protocol for p in EXTERNAL_PROTOCOLS):
            external = True
        elif info.get("RemovableMedia") is True or info.get("External") is True:
            external = True

    # The exclusion wins over everything above.
    fs_type = info.get("FilesystemType")
    if isinstance(fs_type, str):
        lowered = fs_type.lower()
        if any(marker in lowered for marker in VIRTUAL_FS_MARKERS):
            return False

    return external


class DriveInventory:
    """Enumerates volumes and keeps the most recent result."""

    def __init__(
        self,
        executor: PrivilegedExecutor,
        status: StatusModel,
        config: Optional[Settings] = None,
    ):
        self.executor = executor
        self.status = status
        self.settings = config or default_settings
        self._volumes: list[Volume] = []

    @property
    def volumes(self) -> list[Volume]:
        """Every volume seen by the last refresh, selectable or not."""
        return list(self._volumes)

    @property
    def selectable(self) -> list[Volume]:
        return [v for v in self._volumes if self.is_selectable(v)]

    @property
    def current_host(self) -> Optional[Volume]:
        return next((v for v in self._volumes if v.hosts_swap_file), None)

    def find(self, volume_id: str) -> Optional[Volume]:
        return next((v for v in self.selectable if v.id == volume_id), None)

    def is_selectable(self, volume: Volume) -> bool:
        """The one relocation-target policy, shared with the orchestrator."""
        if volume.is_system_volume:
            return (
                self.settings.include_system_volume
                and os.path.normpath(volume.mount_point) == os.path.normpath(str(self.settings.root_path))
            )
        return volume.is_physical_external

    async def refresh(self) -> list[Volume]:
        """Rescan all volumes. Returns the selectable ones."""
        mount_points = self._mount_points()

        scanned = []
        for mount_point in mount_points:
            volume = await self._inspect(mount_point)
            if volume is not None:
                scanned.append(volume)

        self._volumes, _ = await self.detect_swap_host(scanned)

        selectable = self.selectable
        self.status.info(
            f"Found {len(scanned)} volumes, {len(selectable)} usable as swap location"
        )
        return selectable

    async def redetect(self) -> Optional[Volume]:
        """Re-run swap detection against the volumes of the last refresh."""
        self._volumes, host = await self.detect_swap_host(self._volumes)
        return host

    async def detect_swap_host(
        self, volumes: list[Volume]
    ) -> tuple[list[Volume], Optional[Volume]]:
        """Return copies of volumes with the swap host flagged, and the host.

        The inputs are never modified; they may already be published.
        """
        try:
            host = await self._locate_host(volumes)
        except NoSwapFileDetectedError as e:
            self.status.warning(e.message)
            host = None
        except SwapOperationError as e:
            self.status.warning(f"Could not detect swap location: {e.message}")
            host = None

        flagged = [v.model_copy(update={"hosts_swap_file": v is host}) for v in volumes]
        if host is None:
            return flagged, None
        self.status.info(f"Swap file is on {host.name} ({host.mount_point})")
        return flagged, next(f for f, v in zip(flagged, volumes) if v is host)

    async def _locate_host(self, volumes: list[Volume]) -> Optional[Volume]:
        swap_path = str(self.settings.swap_file_path)
        result = await list_swap_file(self.executor, swap_path)
        if not result.ok:
            raise NoSwapFileDetectedError(result.stderr)

        target = parse_symlink_target(result.stdout)
        if target is None:
            if not is_regular_file_listing(result.stdout):
                raise NoSwapFileDetectedError(f"Unexpected listing for {swap_path}")
            return self._system_volume(volumes)

        if not os.path.isabs(target):
            target = os.path.join(os.path.dirname(swap_path), target)
        return self._volume_containing(os.path.normpath(target), volumes)

    def _system_volume(self, volumes: list[Volume]) -> Optional[Volume]:
        root = os.path.normpath(str(self.settings.root_path))
        system = [v for v in volumes if v.is_system_volume]
        for volume in system:
            if os.path.normpath(volume.mount_point) == root:
                return volume
        return system[0] if system else None

    @staticmethod
    def _volume_containing(path: str, volumes: list[Volume]) -> Optional[Volume]:
        best = None
        best_len = -1
        for volume in volumes:
            mount = os.path.normpath(volume.mount_point).rstrip("/")
            if path == mount or path.startswith(mount + "/"):
                if len(mount) > best_len:
                    best, best_len = volume, len(mount)
        return best

    def _mount_points(self) -> list[str]:
        root = str(self.settings.root_path)
        volumes_dir = self.settings.volumes_dir
        try:
            entries = sorted(volumes_dir.iterdir())
        except OSError as e:
            self.status.error(f"Cannot access {volumes_dir}: {e}")
            raise DriveNotFoundError(f"Cannot access {volumes_dir}: {e}") from e

        mount_points = [root]
        real_root = os.path.realpath(root)
        for entry in entries:
            if entry.name.startswith("."):
                continue
            # /Volumes/Macintosh HD is an alias of /
            if os.path.realpath(entry) == real_root:
                continue
            if entry.is_dir():
                mount_points.append(str(entry))
        return mount_points

    async def _inspect(self, mount_point: str) -> Optional[Volume]:
        try:
            usage = shutil.disk_usage(mount_point)
        except OSError as e:
            self.status.warning(f"Skipping {mount_point}: {e}")
            return None

        try:
            info = await diskutil_info(self.executor, mount_point)
        except SwapOperationError as e:
            logger.debug(f"diskutil failed for {mount_point}: {e}")
            info = {}

        name = info.get("VolumeName") or Path(mount_point).name or self.settings.system_volume_name
        volume_id = info.get("VolumeUUID") or mount_point
        return Volume(
            id=str(volume_id),
            name=str(name),
            mount_point=mount_point,
            filesystem=str(info.get("FilesystemType", "")),
            total_capacity=usage.total,
            available_capacity=usage.free,
            is_system_volume=is_boot_volume(
                info,
                mount_point,
                str(name),
                str(self.settings.root_path),
                self.settings.system_volume_name,
            ),
            is_physical_external=is_physical_external(info),
        )
