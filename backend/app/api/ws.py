"""WebSocket endpoint for real-time journey progress updates."""

import asyncio
import logging

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()

# Will be set by main.py on startup
broadcaster = None
tracker = None


async def opening_message(journey_id: str) -> bytes | None:
    """Last published state for a tracked journey, else a freshly computed one."""
    if tracker is None or tracker.get_journey(journey_id) is None:
        return None

    state_data = await broadcaster.get_current_state(journey_id) if broadcaster else None
    if state_data:
        snapshot = orjson.loads(state_data)
        snapshot["type"] = "snapshot"
        return orjson.dumps(snapshot)

    snap = tracker.get_snapshot(journey_id)
    return orjson.dumps({
        "type": "snapshot",
        "journey_id": journey_id,
        "snapshot": snap.model_dump(mode="json"),
    })


@router.websocket("/ws/journeys/{journey_id}")
async def journey_ws(websocket: WebSocket, journey_id: str) -> None:
    """Stream progress snapshots for one journey."""
    await websocket.accept()

    if broadcaster is None or tracker is None:
        await websocket.close(code=1011, reason="Service not ready")
        return

    first = await opening_message(journey_id)
    if first is None:
        await websocket.close(code=1008, reason="Journey not tracked")
        return

    # Send current snapshot first
    await websocket.send_bytes(first)

    queue = broadcaster.subscribe(journey_id)
    try:
        while True:
            data = await queue.get()
            await websocket.send_bytes(data)
    except WebSocketDisconnect:
        pass
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("WebSocket error for journey %s", journey_id)
    finally:
        broadcaster.unsubscribe(journey_id, queue)
