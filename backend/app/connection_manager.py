import logging
from typing import Dict, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages active WebSocket connections."""
    def __init__(self):
        # Maps client_id to their active WebSocket connection
        self.active_connections: Dict[str, WebSocket] = {}

    async def add_connection(self, client_id: str, websocket: WebSocket):
        """Adds an already accepted WebSocket connection to the manager."""
        self.active_connections[client_id] = websocket
        logger.info("Client %s connected. Total clients: %d", client_id, len(self.active_connections))

    def disconnect(self, client_id: str, websocket: Optional[WebSocket] = None):
        """Removes a WebSocket connection, unless a newer one replaced it."""
        current = self.active_connections.get(client_id)
        if current is None or (websocket is not None and current is not websocket):
            return
        del self.active_connections[client_id]
        logger.info("Client %s disconnected. Total clients: %d", client_id, len(self.active_connections))

    def is_connected(self, client_id: str) -> bool:
        return client_id in self.active_connections

    async def send_to_user(self, client_id: str, message: dict):
        """Sends a JSON message to a specific client. A socket that fails is dropped."""
        websocket = self.active_connections.get(client_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except Exception:
            logger.warning("Send to %s failed, dropping its connection", client_id, exc_info=True)
            self.disconnect(client_id, websocket)

