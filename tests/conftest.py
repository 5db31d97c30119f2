from __future__ import annotations

import asyncio
import plistlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

from swap_mover.config import Settings
from swap_mover.models.common import LogKind
from swap_mover.privileged import CommandResult, PrivilegedExecutor
from swap_mover.services.status_model import StatusModel
from swap_mover.services.swap_manager import SwapManager

SYSTEM_INFO = {
    "VolumeName": "Macintosh HD",
    "VolumeUUID": "SYSTEM-UUID",
    "DeviceNode": "/dev/disk3s1",
    "Protocol": "Apple Fabric",
    "FilesystemType": "apfs",
    "Internal": True,
    "VolumeInfo": {"BootFromThisVolume": True},
}

EXTERNAL_INFO = {
    "VolumeName": "External",
    "VolumeUUID": "EXTERNAL-UUID",
    "DeviceNode": "/dev/disk4s2",
    "Protocol": "USB",
    "FilesystemType": "apfs",
    "RemovableMedia": False,
    "External": True,
}

SECOND_EXTERNAL_INFO = {
    "VolumeName": "Archive",
    "VolumeUUID": "ARCHIVE-UUID",
    "DeviceNode": "/dev/disk5s1",
    "Protocol": "Thunderbolt",
    "FilesystemType": "hfs",
}

NETWORK_INFO = {
    "VolumeName": "Share",
    "DeviceNode": "/dev/disk6",
    "Protocol": "USB",
    "FilesystemType": "smbfs",
}


class FakeMac(PrivilegedExecutor):
    """Answers the engine's commands from a small in-memory machine model."""

    def __init__(self, status: StatusModel, config: Settings):
        super().__init__(status, config)
        self.calls: list[tuple[list[str], bool]] = []
        self.sip_output = "System Integrity Protection status: disabled."
        self.swap_enabled = True
        self.swap_link: Optional[str] = None
        self.swap_exists = True
        self.files: set[str] = set()
        self.diskutil: dict[str, dict] = {}
        self.sudo_cached = True
        self.authorize = True
        self.fail_on: list[list[str]] = []
        self.hang_on: Optional[list[str]] = None

    @property
    def swap_path(self) -> str:
        return str(self.settings.swap_file_path)

    def elevated(self) -> list[list[str]]:
        return [argv for argv, elevated in self.calls if elevated]

    def mutations(self) -> list[list[str]]:
        """Elevated calls other than the swap accounting toggle."""
        return [argv for argv in self.elevated() if not argv[0].endswith("sysctl")]

    def commands_logged(self) -> list[str]:
        return [e.message for e in self.status.snapshot().logs if e.kind == LogKind.COMMAND]

    async def _execute(self, argv, timeout, elevated=False):
        self.calls.append((list(argv), elevated))
        # Yield like a real subprocess would.
        await asyncio.sleep(0)
        if self.hang_on is not None and argv[: len(self.hang_on)] == self.hang_on:
            return await super()._execute(["sleep", "5"], timeout)
        name = Path(argv[0]).name
        if any(argv[: len(prefix)] == prefix for prefix in self.fail_on):
            return CommandResult("", f"{name}: Operation not permitted", 1)

        handler = getattr(self, f"_cmd_{name}", None)
        if handler is None:
            return CommandResult("", f"{name}: command not found", 127)
        return handler(argv[1:])

    def _ok(self, stdout: str = "") -> CommandResult:
        return CommandResult(stdout, "", 0)

    def _cmd_csrutil(self, args):
        return self._ok(self.sip_output)

    def _cmd_diskutil(self, args):
        info = self.diskutil.get(args[-1])
        if info is None:
            return CommandResult("", f"Could not find disk: {args[-1]}", 1)
        return self._ok(plistlib.dumps(info).decode())

    def _cmd_ls(self, args):
        if self.swap_link is not None:
            return self._ok(
                f"lrwxr-xr-x  1 root  wheel  40 Apr  2 10:00 {self.swap_path} -> {self.swap_link}"
            )
        if self.swap_exists:
            return self._ok(f"-rw-------  1 root  wheel  1073741824 Apr  2 10:00 {self.swap_path}")
        return CommandResult("", f"ls: {self.swap_path}: No such file or directory", 1)

    def _cmd_sysctl(self, args):
        if args[0] == "-w":
            old = int(self.swap_enabled)
            self.swap_enabled = args[1].endswith("=1")
            return self._ok(f"vm.swap_enabled: {old} -> {int(self.swap_enabled)}")
        return self._ok(f"vm.swap_enabled: {int(self.swap_enabled)}")

    def _cmd_sudo(self, args):
        return self._ok() if self.sudo_cached else CommandResult("", "sudo: a password is required", 1)

    def _cmd_osascript(self, args):
        if self.authorize:
            return self._ok("Admin privileges granted")
        return CommandResult("", "execution error: User canceled. (-128)", 1)

    def _cmd_test(self, args):
        return self._ok() if args[-1] in self.files else CommandResult("", "", 1)

    def _cmd_mkdir(self, args):
        return self._ok()

    def _cmd_chmod(self, args):
        return self._ok()

    def _cmd_rm(self, args):
        path = args[-1]
        if path == self.swap_path:
            self.swap_link = None
            self.swap_exists = False
        self.files.discard(path)
        return self._ok()

    def _cmd_cp(self, args):
        self.files.add(args[1])
        return self._ok()

    def _cmd_ln(self, args):
        if args[-1] == self.swap_path:
            self.swap_link = args[-2]
        return self._ok()

    def _cmd_dd(self, args):
        target = next(a[3:] for a in args if a.startswith("of="))
        if target == self.swap_path:
            self.swap_exists = True
        self.files.add(target)
        return self._ok("1024+0 records in\n1024+0 records out")

    def _cmd_dynamic_pager(self, args):
        self.swap_exists = True
        self.swap_link = None
        return self._ok()


@dataclass
class MacEnv:
    settings: Settings
    status: StatusModel
    fake: FakeMac
    manager: SwapManager
    root: Path
    external: Path
    archive: Path
    share: Path


@pytest.fixture
def mac(tmp_path: Path) -> MacEnv:
    root = tmp_path / "root"
    volumes = tmp_path / "Volumes"
    swap_dir = root / "private" / "var" / "vm"
    swap_dir.mkdir(parents=True)
    external = volumes / "External"
    archive = volumes / "Archive"
    share = volumes / "Share"
    for d in (external, archive, share):
        d.mkdir(parents=True)

    settings = Settings(
        swap_file_path=swap_dir / "swapfile",
        volumes_dir=volumes,
        root_path=root,
        timeout_short=3.0,
        timeout_medium=5.0,
        timeout_elevated=5.0,
        terminate_grace=1.0,
    )
    status = StatusModel()
    fake = FakeMac(status, settings)
    fake.diskutil = {
        str(root): SYSTEM_INFO,
        str(external): EXTERNAL_INFO,
        str(archive): SECOND_EXTERNAL_INFO,
        str(share): NETWORK_INFO,
    }
    manager = SwapManager(settings, status=status, executor=fake)
    return MacEnv(settings, status, fake, manager, root, external, archive, share)
