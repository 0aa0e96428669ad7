"""
Connection handle abstraction over one bidirectional device channel.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


@runtime_checkable
class ConnectionHandle(Protocol):
    """What the registry needs from a transport-owned connection."""

    @property
    def is_open(self) -> bool:
        ...

    async def send(self, data: str) -> None:
        ...


class WebSocketHandle:
    """Adapts a FastAPI WebSocket to ConnectionHandle.

    The handle never closes the socket; the endpoint that accepted it
    owns its lifetime.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.connected_at = datetime.now(timezone.utc)
        self.last_seen = datetime.now(timezone.utc)
        client = websocket.client
        self.peer: Optional[str] = f"{client.host}:{client.port}" if client else None

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, data: str) -> None:
        await self.websocket.send_text(data)

    def touch(self):
        """Update last seen timestamp."""
        self.last_seen = datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return f"<WebSocketHandle peer={self.peer}>"
