"""WebSocket endpoint for live status updates."""

import asyncio
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..models.status import StatusSnapshot
from ..services.swap_manager import swap_manager

router = APIRouter(tags=["websocket"])


def _message(snap: StatusSnapshot) -> dict:
    return {"type": "status", "status": snap.model_dump(mode="json")}


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_change(snap: StatusSnapshot) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, snap)

    async def push_updates():
        while True:
            snap = await queue.get()
            await ws.send_json(_message(snap))

    manager = swap_manager
    manager.status.add_listener(on_change)
    await ws.send_json(_message(manager.snapshot()))
    sender = asyncio.create_task(push_updates())

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if msg.get("action") == "snapshot":
                await queue.put(manager.snapshot())
    except WebSocketDisconnect:
        pass
    finally:
        manager.status.remove_listener(on_change)
        sender.cancel()
