"""Inbound frame routing for machine sessions.

  Machine → Server:
    {"type": "register", "uuid": "<id>"}
    {"type": "status", "uuid": "<id>", "status": "<text>"}

Anything else is logged and dropped; a bad frame never ends the session.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

from webcnc.devices.registry import DeviceRegistry
from webcnc.devices.session import DeviceSession
from webcnc.errors import FrameError, MalformedFrameError, UnknownFrameTypeError

logger = logging.getLogger(__name__)

StatusSink = Callable[[str, Any], None]


@dataclass(frozen=True)
class RegisterFrame:
    uuid: str


@dataclass(frozen=True)
class StatusFrame:
    uuid: str
    status: Any


Frame = Union[RegisterFrame, StatusFrame]


def _require_uuid(data: dict) -> str:
    uuid = data.get("uuid")
    if not isinstance(uuid, str) or not uuid:
        raise MalformedFrameError(f"{data.get('type')} frame needs a non-empty string uuid")
    return uuid


def parse_frame(raw: str | bytes) -> Frame:
    """Decode a raw WebSocket frame into a typed frame."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrameError(f"Frame is not UTF-8: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedFrameError(f"Frame is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedFrameError("Frame must be a JSON object")

    frame_type = data.get("type")
    if frame_type == "register":
        return RegisterFrame(uuid=_require_uuid(data))
    if frame_type == "status":
        if "status" not in data:
            raise MalformedFrameError("status frame has no status field")
        return StatusFrame(uuid=_require_uuid(data), status=data["status"])
    raise UnknownFrameTypeError(frame_type)


def log_status(uuid: str, status: Any) -> None:
    logger.info("Status from %s: %s", uuid, status)


class InboundRouter:
    """Applies inbound frames to the registry and the status sink.

    ``handle`` is synchronous and only touches in-memory state, so it never
    stalls a session's receive loop.
    """

    def __init__(self, registry: DeviceRegistry, status_sink: StatusSink | None = None) -> None:
        self.registry = registry
        self.status_sink = status_sink or log_status

    def handle(self, session: DeviceSession, raw: str | bytes) -> Frame | None:
        """Route one raw frame; return the parsed frame or None if dropped."""
        try:
            frame = parse_frame(raw)
        except UnknownFrameTypeError as exc:
            logger.debug("Dropping frame from %s: %s", session.session_id, exc)
            return None
        except FrameError as exc:
            logger.warning("Malformed frame from %s: %s", session.session_id, exc)
            return None

        if isinstance(frame, RegisterFrame):
            self._register(session, frame.uuid)
        else:
            self._status(session, frame)
        return frame

    def _register(self, session: DeviceSession, uuid: str) -> None:
        if not session.alive:
            return
        if session.uuid is not None and session.uuid != uuid:
            # a session answers to one identity at a time
            self.registry.remove_if_current(session.uuid, session)
        previous = self.registry.set(uuid, session)
        session.mark_registered(uuid)
        if previous is not None:
            logger.warning(
                "CNC %s re-registered: session %s replaces %s",
                uuid, session.session_id, previous.session_id,
            )
        else:
            logger.info("CNC registered: %s (session %s)", uuid, session.session_id)

    def _status(self, session: DeviceSession, frame: StatusFrame) -> None:
        if session.uuid is not None and session.uuid != frame.uuid:
            logger.debug(
                "Session %s registered as %s reports status for %s",
                session.session_id, session.uuid, frame.uuid,
            )
        session.record_status(frame.status)
        self.status_sink(frame.uuid, frame.status)
