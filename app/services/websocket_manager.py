"""
WebSocket connection rooms for real-time check-in updates
"""

import json
import logging
from typing import Dict, List
from fastapi import WebSocket

logger = logging.getLogger(__name__)

class WebSocketManager:
    """Manages WebSocket connections per event instance"""

    def __init__(self):
        # event_instance_id -> list of websockets
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, event_instance_id: str):
        """Accept WebSocket connection and add to event instance room"""
        await websocket.accept()

        self.active_connections.setdefault(event_instance_id, []).append(websocket)
        logger.info(f"WebSocket connected to event instance {event_instance_id}. Total connections: {len(self.active_connections[event_instance_id])}")

    def disconnect(self, websocket: WebSocket, event_instance_id: str):
        """Remove WebSocket connection from event instance room"""
        connections = self.active_connections.get(event_instance_id)
        if not connections or websocket not in connections:
            return

        connections.remove(websocket)
        logger.info(f"WebSocket disconnected from event instance {event_instance_id}. Remaining connections: {len(connections)}")

        # Clean up empty rooms
        if not connections:
            del self.active_connections[event_instance_id]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(message, default=str))
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def broadcast_to_event(self, event_instance_id: str, message: dict):
        """Broadcast message to all WebSockets connected to an event instance"""
        if event_instance_id not in self.active_connections:
            logger.debug(f"No active connections for event instance {event_instance_id}")
            return

        # Create list copy to avoid modification during iteration
        connections = self.active_connections[event_instance_id].copy()

        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(json.dumps(message, default=str))
            except Exception as e:
                logger.error(f"Error broadcasting to websocket: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket, event_instance_id)

    def get_connection_count(self, event_instance_id: str) -> int:
        return len(self.active_connections.get(event_instance_id, []))

    def get_all_connection_counts(self) -> Dict[str, int]:
        return {
            event_instance_id: len(connections)
            for event_instance_id, connections in self.active_connections.items()
        }
