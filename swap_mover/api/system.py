"""System status API endpoints."""

from fastapi import APIRouter

from ..services.swap_manager import swap_manager

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def get_status():
    return swap_manager.snapshot()


@router.post("/initialize")
async def initialize():
    return await swap_manager.initialize()


@router.post("/sip/check")
async def check_sip():
    return await swap_manager.check_sip()


@router.post("/swap/detect")
async def detect_swap_location():
    host = await swap_manager.detect_swap_location()
    return {"current_location": host}


@router.delete("/logs")
async def clear_logs():
    swap_manager.clear_logs()
    return {"cleared": True}
