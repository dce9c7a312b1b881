"""WebSocket stream of derived transit state (vehicles, route cards, arrivals)."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()

# Set by main.py
broadcaster = None
tracker = None


@router.websocket("/ws/vehicles")
async def transit_ws(websocket: WebSocket) -> None:
    """Send a snapshot, then every recomputed state until the client leaves."""
    await websocket.accept()
    if broadcaster is None:
        await websocket.close(code=1011, reason="Service not ready")
        return

    snapshot = await broadcaster.snapshot(tracker.state_payload() if tracker is not None else None)
    if snapshot:
        await websocket.send_bytes(snapshot)

    queue = broadcaster.subscribe()
    logger.debug("WebSocket client joined, %d subscribers", broadcaster.subscriber_count)
    try:
        while True:
            await websocket.send_bytes(await queue.get())
    except WebSocketDisconnect:
        logger.debug("WebSocket client left")
    except Exception:
        logger.exception("WebSocket stream failed")
    finally:
        broadcaster.unsubscribe(queue)
