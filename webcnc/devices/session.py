"""Transport session for a single connected machine."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid as uuid_mod
from enum import Enum
from typing import Any, AsyncIterator

from fastapi import WebSocket

from webcnc.errors import DeliveryError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CONNECTED = "connected"
    REGISTERED = "registered"
    CLOSED = "closed"


class DeviceSession:
    """Tracks one machine's WebSocket and the identity it registered under.

    ``uuid`` is set by the router when the machine registers so that the
    close handler can find its registry entry without scanning.
    """

    def __init__(self, websocket: WebSocket, session_id: str | None = None) -> None:
        self.websocket = websocket
        self.session_id = session_id or f"sess-{uuid_mod.uuid4().hex[:8]}"
        self.uuid: str | None = None
        self.state = SessionState.CONNECTED
        self.connected_at = time.time()
        self.last_status: Any = None
        self.last_status_at: float | None = None
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<DeviceSession {self.session_id} uuid={self.uuid!r} {self.state.value}>"

    @property
    def alive(self) -> bool:
        return self.state is not SessionState.CLOSED

    def mark_registered(self, uuid: str) -> None:
        self.uuid = uuid
        if self.alive:
            self.state = SessionState.REGISTERED

    def mark_closed(self) -> SessionState:
        """Move to CLOSED and return the state the session was in before."""
        previous = self.state
        self.state = SessionState.CLOSED
        return previous

    def record_status(self, status: Any) -> None:
        self.last_status = status
        self.last_status_at = time.time()

    async def frames(self) -> AsyncIterator[str | bytes]:
        """Yield raw inbound frames until the transport closes."""
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(
                    "Session %s closed by peer (code %s)",
                    self.session_id, message.get("code"),
                )
                return
            text = message.get("text")
            if text is not None:
                yield text
            elif message.get("bytes") is not None:
                yield message["bytes"]

    async def send(self, message: dict) -> None:
        """Send a JSON message, raising :class:`DeliveryError` on failure.

        Sends are serialised per session so concurrent callers never
        interleave frames on the wire.
        """
        if not self.alive:
            raise DeliveryError(self.uuid, self.session_id, "session is closed")
        payload = json.dumps(message)
        async with self._send_lock:
            try:
                await self.websocket.send_text(payload)
            except Exception as exc:
                raise DeliveryError(self.uuid, self.session_id, str(exc) or type(exc).__name__) from exc
