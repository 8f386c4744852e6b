"""Machine agent that keeps a registered connection and reports status.

The agent does not interpret commands; it logs each payload and hands it to
an optional callback so a real controller can be plugged in.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from webcnc.agent.client import CNCAgentClient

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 2
MAX_RECONNECT_DELAY = 60


class MachineAgent:
    """Runs the listener, status and reconnect loops for one machine."""

    def __init__(
        self,
        client: CNCAgentClient,
        status_interval: float = 30.0,
        on_command: Optional[Callable[[Any], Awaitable[None]]] = None,
    ) -> None:
        self.client = client
        self.status_interval = status_interval
        self.status = "idle"
        self.commands_received = 0
        self._on_command = on_command
        self._running = False
        self._reconnect_delay = RECONNECT_DELAY
        client.on_command(self._handle_command)

    async def _handle_command(self, command: Any) -> None:
        self.commands_received += 1
        logger.info("Command for %s: %r", self.client.uuid, command)
        if self._on_command is not None:
            await self._on_command(command)

    async def start(self) -> None:
        self._running = True
        if not await self.client.connect():
            logger.error("Initial connection failed, will retry in background")
        try:
            await asyncio.gather(
                self._server_listener(),
                self._status_loop(),
                self._reconnect_loop(),
            )
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Shutting down machine agent %s", self.client.uuid)
        self._running = False
        await self.client.disconnect()

    # ── Background loops ──────────────────────────────────────────

    async def _server_listener(self) -> None:
        while self._running:
            if self.client.connected:
                await self.client.listen()
            await asyncio.sleep(1)

    async def _status_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.status_interval)
            if self.client.connected:
                try:
                    await self.client.send_status(self.status)
                except Exception:
                    logger.debug("Status send failed")

    async def _reconnect_loop(self) -> None:
        """Reconnect with exponential backoff whenever the connection drops."""
        while self._running:
            if self.client.connected:
                await asyncio.sleep(5)
                continue
            logger.info("Reconnecting in %ds...", self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)
            if not self._running:
                break
            if await self.client.connect():
                logger.info("Reconnected to server")
                self._reconnect_delay = RECONNECT_DELAY
            else:
                self._reconnect_delay = min(self._reconnect_delay * 2, MAX_RECONNECT_DELAY)
