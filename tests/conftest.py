"""pytest configuration for WebCNC tests."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest


# Configure asyncio mode for pytest-asyncio
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


class FakeWebSocket:
    """Stand-in for a Starlette WebSocket, driven from the test side."""

    def __init__(self, host: str = "10.0.0.5", fail_sends: bool = False) -> None:
        self.client = SimpleNamespace(host=host)
        self.fail_sends = fail_sends
        self.accepted = False
        self.sent: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._inbound: asyncio.Queue = asyncio.Queue()

    # ── test side ─────────────────────────────────────────────────

    def feed(self, frame: str | bytes | dict) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        key = "bytes" if isinstance(frame, bytes) else "text"
        self._inbound.put_nowait({"type": "websocket.receive", key: frame})

    def disconnect(self, code: int = 1000) -> None:
        self._inbound.put_nowait({"type": "websocket.disconnect", "code": code})

    # ── WebSocket API used by the server ──────────────────────────

    async def accept(self) -> None:
        self.accepted = True

    async def receive(self) -> dict:
        return await self._inbound.get()

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise RuntimeError("connection reset")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.sent.append(json.loads(data))
        self.in_flight -= 1


@pytest.fixture
def fake_socket():
    """Factory for :class:`FakeWebSocket` instances."""
    return FakeWebSocket
