"""
WebSocket endpoint streaming live RSVP snapshots to check-in dashboards
"""

import asyncio
import json
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.api.deps import assignment_orchestrator, checkin_ledger, websocket_manager
from app.core.db import get_db
from app.core.errors import NotFoundError

logger = logging.getLogger(__name__)

# Router for WebSocket endpoints
router = APIRouter()

@router.websocket("/event-instances/{event_instance_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    event_instance_id: str,
    db: Session = Depends(get_db)
):
    """Stream RSVP snapshots and check-in events for an event instance"""
    try:
        instance = assignment_orchestrator.get_event_instance(db, event_instance_id)
    except NotFoundError:
        await websocket.close(code=4004, reason="Event instance not found")
        return

    await websocket_manager.connect(websocket, event_instance_id)

    # Snapshots can arrive from a Firestore listener thread
    loop = asyncio.get_running_loop()
    snapshots: asyncio.Queue = asyncio.Queue()

    def on_snapshot(rsvps):
        loop.call_soon_threadsafe(snapshots.put_nowait, rsvps)

    async def forward_snapshots():
        while True:
            rsvps = await snapshots.get()
            await websocket_manager.send_personal_message({
                "type": "rsvps",
                "event_instance_id": event_instance_id,
                "stats": jsonable_encoder(checkin_ledger.calculate_stats(rsvps)),
                "rsvps": jsonable_encoder(rsvps, exclude={"admission_image", "rsvp_token"}),
            }, websocket)

    subscription = checkin_ledger.subscribe(db, event_instance_id, on_snapshot)
    sender = asyncio.create_task(forward_snapshots())

    try:
        await websocket_manager.send_personal_message({
            "type": "connection",
            "message": f"Connected to event instance: {instance.event_name}",
            "event_instance_id": event_instance_id,
            "connection_count": websocket_manager.get_connection_count(event_instance_id)
        }, websocket)

        # Keep connection alive and answer heartbeats
        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue

            if client_message.get("type") == "ping":
                await websocket_manager.send_personal_message({
                    "type": "pong",
                    "timestamp": client_message.get("timestamp")
                }, websocket)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        subscription.unsubscribe()
        sender.cancel()
        websocket_manager.disconnect(websocket, event_instance_id)

@router.get("/stats")
async def websocket_stats():
    """Get WebSocket connection statistics (for debugging)"""
    counts = websocket_manager.get_all_connection_counts()
    return {
        "total_event_instances_with_connections": len(counts),
        "connection_counts": counts,
        "total_connections": sum(counts.values())
    }
