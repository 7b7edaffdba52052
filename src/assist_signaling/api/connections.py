"""WebSocket transport handles."""

import logging
from dataclasses import dataclass

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class WebSocketConnection:
    """Connection handle writing JSON frames to a FastAPI WebSocket."""

    websocket: WebSocket

    async def send(self, message: dict[str, object]) -> None:
        """Send a message if the socket is still open."""
        if self.websocket.application_state != WebSocketState.CONNECTED:
            logger.debug("Skipping send on closed socket: %s", message.get("type"))
            return
        await self.websocket.send_json(message)
