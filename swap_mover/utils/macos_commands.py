"""Wrappers for the macOS system commands the engine uses."""

from typing import Any, Optional

from ..errors import CommandExecutionFailedError
from ..privileged import CommandResult, PrivilegedExecutor

CSRUTIL = "/usr/bin/csrutil"
DISKUTIL = "/usr/sbin/diskutil"
SYSCTL = "/usr/sbin/sysctl"
LS = "/bin/ls"
TEST = "/usr/bin/test"
MKDIR = "/bin/mkdir"
RM = "/bin/rm"
CP = "/bin/cp"
CHMOD = "/bin/chmod"
LN = "/bin/ln"
DD = "/bin/dd"
DYNAMIC_PAGER = "/usr/sbin/dynamic_pager"

SWAP_ENABLED_KEY = "vm.swap_enabled"


async def csrutil_status(executor: PrivilegedExecutor) -> CommandResult:
    return await executor.run(CSRUTIL, ["status"], timeout=executor.settings.timeout_medium)


async def diskutil_info(executor: PrivilegedExecutor, path: str) -> dict[str, Any]:
    """diskutil info -plist for a mount point; {} when unknown."""
    return await executor.run_structured(
        DISKUTIL, ["info", "-plist", path], timeout=executor.settings.timeout_short,
    )


async def list_swap_file(executor: PrivilegedExecutor, swap_path: str) -> CommandResult:
    return await executor.run(LS, ["-la", swap_path], timeout=executor.settings.timeout_short)


def parse_symlink_target(ls_output: str) -> Optional[str]:
    """Extract the link target from an ``ls -la`` line, if it is a symlink."""
    for line in ls_output.splitlines():
        line = line.strip()
        if line.startswith("l") and " -> " in line:
            return line.split(" -> ", 1)[1].strip()
    return None


def is_regular_file_listing(ls_output: str) -> bool:
    return any(line.strip().startswith("-") for line in ls_output.splitlines())


async def swap_enabled(executor: PrivilegedExecutor) -> bool:
    result = await executor.run(SYSCTL, [SWAP_ENABLED_KEY], timeout=executor.settings.timeout_short)
    if not result.ok:
        raise CommandExecutionFailedError(result.stderr or f"sysctl {SWAP_ENABLED_KEY} failed")
    return f"{SWAP_ENABLED_KEY}: 1" in result.stdout


async def set_swap_enabled(executor: PrivilegedExecutor, enabled: bool) -> CommandResult:
    value = 1 if enabled else 0
    return await executor.run_elevated(SYSCTL, ["-w", f"{SWAP_ENABLED_KEY}={value}"])


async def file_exists(executor: PrivilegedExecutor, path: str) -> bool:
    result = await executor.run(TEST, ["-f", path], timeout=executor.settings.timeout_short)
    return result.ok


async def make_directory(executor: PrivilegedExecutor, path: str) -> CommandResult:
    return await executor.run_elevated(MKDIR, ["-p", path])


async def remove_file(executor: PrivilegedExecutor, path: str, force: bool = False) -> CommandResult:
    args = ["-f", path] if force else [path]
    return await executor.run_elevated(RM, args)


async def copy_file(executor: PrivilegedExecutor, source: str, target: str) -> CommandResult:
    return await executor.run_elevated(CP, [source, target])


async def set_swap_permissions(executor: PrivilegedExecutor, path: str) -> CommandResult:
    return await executor.run_elevated(CHMOD, ["644", path])


async def create_symlink(executor: PrivilegedExecutor, target: str, link: str) -> CommandResult:
    return await executor.run_elevated(LN, ["-s", target, link])


async def zero_fill(executor: PrivilegedExecutor, path: str, size_mib: int) -> CommandResult:
    return await executor.run_elevated(
        DD, ["if=/dev/zero", f"of={path}", "bs=1m", f"count={size_mib}"],
    )


async def regenerate_swap_file(executor: PrivilegedExecutor, path: str) -> CommandResult:
    """Let dynamic_pager create a fresh default swap file."""
    return await executor.run_elevated(DYNAMIC_PAGER, ["-F", path])
