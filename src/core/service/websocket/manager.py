"""WebSocket connection manager pushing transfer events to the presentation layer."""

from typing import Dict, List, Optional
from fastapi import WebSocket

from src.core.logger.logger import logger
from src.core.service.transfer.models import OrchestrationEvent


class ConnectionManager:
    """Manages per-user WebSocket connections and event fan-out."""

    def __init__(self):
        """Initialize the connection manager."""
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str):
        """
        Accept a new WebSocket connection subscribed to one user's transfers.

        Args:
            websocket: The WebSocket connection
            user_id: The user whose events should be delivered
        """
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)

        await websocket.send_json({
            "message": "Subscribed to transfer events",
            "userId": user_id
        })

        logger.info("Transfer event subscriber connected", extra={"user_id": user_id})

    def disconnect(self, websocket: WebSocket, user_id: str):
        """
        Remove a WebSocket connection.

        Args:
            websocket: The WebSocket connection to remove
            user_id: The user it was subscribed to
        """
        connections = self.active_connections.get(user_id, [])
        if websocket in connections:
            connections.remove(websocket)
            logger.info("Transfer event subscriber disconnected", extra={"user_id": user_id})
        if not connections:
            self.active_connections.pop(user_id, None)

    async def send_to_user(self, user_id: str, data: dict):
        """
        Send a message to every connection of one user.

        Args:
            user_id: Target user
            data: The data to send (will be JSON serialized)
        """
        disconnected = []
        for connection in list(self.active_connections.get(user_id, [])):
            try:
                await connection.send_json(data)
            except Exception as e:
                # If send fails, mark for disconnection
                logger.warning("Failed to push transfer event", extra={"user_id": user_id, "error": str(e)})
                disconnected.append(connection)

        # Clean up disconnected clients
        for connection in disconnected:
            self.disconnect(connection, user_id)

    async def publish(self, event: OrchestrationEvent):
        """Orchestrator listener: forward an event to its user's subscribers."""
        await self.send_to_user(event.userId, event.model_dump(mode="json"))

    def get_connection_count(self, user_id: Optional[str] = None) -> int:
        """Get the number of active connections, overall or for one user."""
        if user_id is not None:
            return len(self.active_connections.get(user_id, []))
        return sum(len(connections) for connections in self.active_connections.values())
