"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api.router import api_router
from .services.swap_manager import swap_manager

# Configure logging for our modules
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s: %(message)s")
logging.getLogger("swap_mover").setLevel(logging.DEBUG)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # SIP state, drives and swap location, gathered concurrently
    await swap_manager.initialize()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="swap-mover",
        version="0.1.0",
        description="Move the macOS swap file between volumes",
        lifespan=lifespan,
    )

    app.include_router(api_router, prefix="/api")

    return app
