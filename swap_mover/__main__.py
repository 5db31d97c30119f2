"""Serve the swap-mover API (python -m swap_mover, or the swap-mover script)."""

import uvicorn
from .config import settings


def main():
    """Start uvicorn on the configured host and port."""
    uvicorn.run(
        "swap_mover.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
