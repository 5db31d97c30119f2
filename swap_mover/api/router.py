"""Aggregate all API sub-routers."""

from fastapi import APIRouter

from . import system, drives, relocation, ws

api_router = APIRouter()

api_router.include_router(system.router)
api_router.include_router(drives.router)
api_router.include_router(relocation.router)
api_router.include_router(ws.router)
