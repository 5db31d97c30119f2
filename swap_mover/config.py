"""Application settings."""

from pathlib import Path
from typing import Literal
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8788
    debug: bool = False

    swap_file_path: Path = Path("/private/var/vm/swapfile")
    volumes_dir: Path = Path("/Volumes")
    root_path: Path = Path("/")
    system_volume_name: str = "Macintosh HD"

    # Seconds
    timeout_short: float = 3.0
    timeout_medium: float = 5.0
    timeout_long: float = 15.0
    timeout_elevated: float = 300.0  # consent dialog + copy of the swap file
    terminate_grace: float = 2.0

    default_swap_size_mib: int = 1024
    include_system_volume: bool = True
    elevation_mode: Literal["osascript", "sudo"] = "osascript"

    model_config = {"env_prefix": "SWAPMOVER_"}


settings = Settings()
