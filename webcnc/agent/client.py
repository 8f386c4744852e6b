"""WebSocket client for connecting a machine to the WebCNC server.

Handles the machine side of the protocol:
  Machine → Server: register, status
  Server → Machine: command
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)

CommandHandler = Callable[[Any], Awaitable[None]]


class CNCAgentClient:
    """Keeps one machine registered with the WebCNC server."""

    def __init__(self, server_url: str, uuid: str):
        self.server_url = server_url
        self.uuid = uuid

        self._ws: Optional[ClientConnection] = None
        self._command_handler: Optional[CommandHandler] = None
        self._connected = False

    def on_command(self, handler: CommandHandler) -> None:
        """Register the coroutine called with each received command payload."""
        self._command_handler = handler

    async def connect(self) -> bool:
        """Open the socket and register this machine's UUID."""
        await self._drop_socket()
        try:
            self._ws = await websockets.connect(
                self.server_url,
                ping_interval=20,
                ping_timeout=10,
                close_timeout=5,
            )
            await self._send({"type": "register", "uuid": self.uuid})
        except Exception:
            logger.exception("Failed to connect to %s", self.server_url)
            await self._drop_socket()
            return False

        self._connected = True
        logger.info("Registered with %s as %s", self.server_url, self.uuid)
        return True

    async def _send(self, message: dict) -> None:
        if self._ws:
            await self._ws.send(json.dumps(message))

    async def send_status(self, status: str) -> None:
        await self._send({"type": "status", "uuid": self.uuid, "status": status})

    async def listen(self) -> None:
        """Listen for server frames. Blocks until disconnected."""
        if not self._ws:
            return
        try:
            async for raw in self._ws:
                try:
                    msg = json.loads(raw)
                except (TypeError, ValueError):
                    logger.warning("Ignoring non-JSON frame from server")
                    continue
                if not isinstance(msg, dict) or msg.get("type") != "command":
                    logger.debug("Unhandled frame: %r", msg)
                    continue
                if self._command_handler is None:
                    logger.info("Command received (no handler): %r", msg.get("command"))
                    continue
                try:
                    await self._command_handler(msg.get("command"))
                except Exception:
                    logger.exception("Command handler failed")
        except websockets.ConnectionClosed:
            logger.info("Server connection closed")
        except Exception:
            logger.exception("WebSocket listen error")
        finally:
            self._connected = False

    async def _drop_socket(self) -> None:
        ws, self._ws = self._ws, None
        self._connected = False
        if ws is None:
            return
        try:
            await ws.close()
        except Exception:
            logger.debug("Error closing stale socket", exc_info=True)

    async def disconnect(self) -> None:
        ws, self._ws = self._ws, None
        if ws:
            await ws.close()
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected
