"""
Viewer Hub - the set of connected viewer WebSockets and fan-out of server events
"""

import logging
from typing import Set

from fastapi import WebSocket

from browser_viewer.schemas.events import ServerEvent

logger = logging.getLogger(__name__)


class ViewerHub:
    def __init__(self):
        self.connections: Set[WebSocket] = set()

    @property
    def viewer_count(self) -> int:
        return len(self.connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.connections.add(websocket)
        logger.info(f"[Viewer] Connected ({self.viewer_count} viewers)")

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self.connections:
            self.connections.discard(websocket)
            logger.info(f"[Viewer] Disconnected ({self.viewer_count} viewers)")

    async def send(self, websocket: WebSocket, event: ServerEvent) -> None:
        """Send one event to a single viewer"""
        await websocket.send_json(event.to_wire())

    async def broadcast(self, event: ServerEvent) -> None:
        """Send an event to every viewer in turn; a viewer whose socket fails is dropped"""
        message = event.to_wire()
        for websocket in list(self.connections):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"[Viewer] Dropping viewer after failed '{event.event}' send: {e}")
                self.disconnect(websocket)

    async def close_all(self) -> None:
        for websocket in list(self.connections):
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"[Viewer] Close failed: {e}")
            self.disconnect(websocket)
