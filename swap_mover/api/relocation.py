"""Relocation API endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..errors import RelocationInProgressError
from ..services.swap_manager import swap_manager

router = APIRouter(prefix="/relocation", tags=["relocation"])


class StartRequest(BaseModel):
    volume_id: Optional[str] = None  # defaults to the selected drive


@router.post("/start", status_code=202)
async def start_relocation(req: StartRequest):
    snap = swap_manager.snapshot()
    if not snap.security.sip_disabled:
        raise HTTPException(status_code=403, detail="System Integrity Protection is enabled")

    volume_id = req.volume_id or snap.selected_drive_id
    if volume_id is None or all(d.id != volume_id for d in snap.available_drives):
        raise HTTPException(status_code=404, detail="Drive not found")

    try:
        await swap_manager.start_relocation(volume_id)
    except RelocationInProgressError as e:
        raise HTTPException(status_code=409, detail=e.message)
    return {"started": True, "volume_id": volume_id}


@router.get("/outcome")
async def get_outcome():
    snap = swap_manager.snapshot()
    return {
        "state": snap.relocation_state,
        "busy": snap.busy,
        "outcome": snap.last_outcome,
    }
