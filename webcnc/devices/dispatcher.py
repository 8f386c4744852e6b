"""Operator command dispatch to connected machines.

Delivery is best-effort and at-most-once: a successful dispatch means the
command frame was handed to the machine's transport, not that the machine
received or executed it.  Failures are never retried.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from webcnc.devices.registry import DeviceRegistry
from webcnc.errors import DeliveryError, NotConnectedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchReceipt:
    uuid: str
    session_id: str
    sent_at: float


def command_frame(command: Any) -> dict:
    return {"type": "command", "command": command}


class CommandDispatcher:
    def __init__(self, registry: DeviceRegistry) -> None:
        self.registry = registry

    async def dispatch(self, uuid: str, command: Any) -> DispatchReceipt:
        """Send *command* to the machine registered as *uuid*.

        Raises :class:`NotConnectedError` when no session is mapped to the
        UUID, and :class:`DeliveryError` when the transport send fails.
        """
        session = self.registry.get(uuid)
        if session is None:
            raise NotConnectedError(uuid)

        try:
            await session.send(command_frame(command))
        except DeliveryError:
            logger.warning("Command to %s failed on session %s", uuid, session.session_id)
            raise

        logger.info("Command sent to %s (session %s)", uuid, session.session_id)
        return DispatchReceipt(uuid=uuid, session_id=session.session_id, sent_at=time.time())
