"""WebSocket endpoint and lifecycle supervision for machine connections.

Each connection moves through ``connected -> registered -> closed`` (or
straight to ``closed`` if it never registers).  On close the supervisor
releases the registry entry, but only while that entry still points at the
closing session: a machine that reconnected before its old socket noticed
the drop keeps its new registration.
"""

from __future__ import annotations

import logging

from fastapi import WebSocket

from webcnc.devices.registry import DeviceRegistry
from webcnc.devices.router import InboundRouter
from webcnc.devices.session import DeviceSession, SessionState

logger = logging.getLogger(__name__)


class DeviceSupervisor:
    """Runs machine sessions and cleans up after them."""

    def __init__(self, registry: DeviceRegistry, router: InboundRouter) -> None:
        self.registry = registry
        self.router = router

    async def run(self, websocket: WebSocket) -> DeviceSession:
        """Serve one machine connection until it closes.

        Mount it in FastAPI via a thin ``@app.websocket`` route that looks
        the supervisor up on ``app.state``.
        """
        await websocket.accept()
        session = DeviceSession(websocket)
        client = websocket.client.host if websocket.client else "unknown"
        logger.info("New WebSocket connection from %s (session %s)", client, session.session_id)

        try:
            async for raw in session.frames():
                self.router.handle(session, raw)
        except Exception:
            logger.exception("Error in WebSocket session %s", session.session_id)
        finally:
            self.release(session)
        return session

    def release(self, session: DeviceSession) -> bool:
        """Mark *session* closed and drop its registry entry if still current."""
        previous = session.mark_closed()
        if previous is SessionState.CLOSED:
            return False
        if previous is not SessionState.REGISTERED or session.uuid is None:
            logger.info("Session %s closed before registering", session.session_id)
            return False

        removed = self.registry.remove_if_current(session.uuid, session)
        if removed:
            logger.info("CNC disconnected: %s (session %s)", session.uuid, session.session_id)
        else:
            logger.info(
                "Stale session %s for %s closed; newer registration kept",
                session.session_id, session.uuid,
            )
        return removed
