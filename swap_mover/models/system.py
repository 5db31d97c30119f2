"""System information models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


def _gigabytes(size: int) -> str:
    return f"{size / 1_000_000_000:.1f} GB"


class Volume(BaseModel):
    id: str
    name: str
    mount_point: str
    filesystem: str = ""
    total_capacity: int = 0
    available_capacity: int = 0
    is_system_volume: bool = False
    is_physical_external: bool = False
    hosts_swap_file: bool = False

    @property
    def swap_target_path(self) -> str:
        """Where the swap file lives when this volume hosts it."""
        return f"{self.mount_point.rstrip('/')}/private/var/vm/swapfile"

    @property
    def size_label(self) -> str:
        return _gigabytes(self.total_capacity)

    @property
    def available_label(self) -> str:
        return _gigabytes(self.available_capacity)


class SecurityState(BaseModel):
    sip_disabled: bool = False
    checked_at: Optional[datetime] = None
