"""Permission checking utilities."""

from pathlib import Path

from ..errors import SwapOperationError
from ..privileged import PrivilegedExecutor


async def check_sudo_cached(executor: PrivilegedExecutor) -> bool:
    """Check if sudo credentials are cached (non-interactive)."""
    try:
        return await executor.probe_privileges()
    except SwapOperationError:
        return False


def check_swap_directory_access(swap_path: Path) -> bool:
    """The swap directory must exist and be listable by this process."""
    directory = swap_path.parent
    if not directory.exists():
        return False
    try:
        list(directory.iterdir())
    except OSError:
        return False
    return True
