"""
WebSocket manager for real-time hostess updates
"""

import json
import logging
from typing import Dict, List
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from sqlalchemy.orm import Session

from rsvp_manager.core.db import get_db
from rsvp_manager.models import WeddingEvent

logger = logging.getLogger(__name__)

class WebSocketManager:
    """Keeps one room of connections per event"""

    def __init__(self):
        # event id -> list of websockets
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, room: str):
        await websocket.accept()
        self.active_connections.setdefault(room, []).append(websocket)
        logger.info(f"WebSocket connected to event {room}. Total connections: {len(self.active_connections[room])}")

    def disconnect(self, websocket: WebSocket, room: str):
        connections = self.active_connections.get(room)
        if not connections or websocket not in connections:
            return

        connections.remove(websocket)
        logger.info(f"WebSocket disconnected from event {room}. Remaining connections: {len(connections)}")
        if not connections:
            del self.active_connections[room]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        await websocket.send_text(json.dumps(message))

    async def broadcast_to_event(self, room: str, message: dict):
        """Send a message to every connection in an event's room"""
        if room not in self.active_connections:
            logger.info(f"No active connections for event {room}")
            return

        disconnected = []
        for websocket in list(self.active_connections[room]):
            try:
                await websocket.send_text(json.dumps(message))
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.error(f"Error broadcasting to websocket: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket, room)

    def get_connection_count(self, room: str) -> int:
        return len(self.active_connections.get(room, []))

    def get_all_connection_counts(self) -> Dict[str, int]:
        return {room: len(connections) for room, connections in self.active_connections.items()}

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

router = APIRouter()

@router.websocket("/events/{event_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    event_id: int,
    db: Session = Depends(get_db)
):
    """Hostess screens subscribe here for arrival and table updates"""
    event = db.query(WeddingEvent).filter(
        WeddingEvent.id == event_id,
        WeddingEvent.is_active == True
    ).first()
    if not event:
        await websocket.close(code=4004, reason="Event not found")
        return

    room = str(event_id)
    await websocket_manager.connect(websocket, room)

    try:
        await websocket_manager.send_personal_message({
            "type": "connection",
            "message": f"Connected to event: {event.title}",
            "event_id": event_id,
            "connection_count": websocket_manager.get_connection_count(room),
        }, websocket)

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
                    "timestamp": client_message.get("timestamp"),
                }, websocket)

    except WebSocketDisconnect:
        logger.info(f"Hostess screen left event {room}")
    finally:
        websocket_manager.disconnect(websocket, room)

@router.get("/stats")
async def websocket_stats():
    """Connection statistics"""
    counts = websocket_manager.get_all_connection_counts()
    return {
        "total_events_with_connections": len(counts),
        "connection_counts": counts,
        "total_connections": sum(counts.values()),
    }
