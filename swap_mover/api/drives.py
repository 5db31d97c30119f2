"""Drive inventory API endpoints."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..errors import DriveNotFoundError
from ..services.swap_manager import swap_manager

router = APIRouter(prefix="/drives", tags=["drives"])


class SelectRequest(BaseModel):
    volume_id: str


@router.get("")
async def list_drives():
    return swap_manager.snapshot().available_drives


@router.post("/refresh")
async def refresh_drives():
    drives = await swap_manager.refresh_drives()
    snap = swap_manager.snapshot()
    return {"drives": drives, "last_error": snap.last_error}


@router.post("/select")
async def select_drive(req: SelectRequest):
    try:
        volume = swap_manager.select_drive(req.volume_id)
    except DriveNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return volume
