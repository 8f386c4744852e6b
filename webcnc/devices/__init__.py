"""WebCNC device connection core.

Server-side components for machines connected over WebSocket:
  - Session: one live connection, its state and serialised sends
  - Registry: device UUID → current live session
  - Router: applies inbound ``register`` / ``status`` frames
  - Dispatcher: pushes operator commands to a connected machine
  - WebSocket: per-connection receive loop and close-time cleanup
"""

from webcnc.devices.dispatcher import CommandDispatcher, DispatchReceipt
from webcnc.devices.registry import DeviceRegistry
from webcnc.devices.router import InboundRouter, RegisterFrame, StatusFrame, parse_frame
from webcnc.devices.session import DeviceSession, SessionState
from webcnc.devices.websocket import DeviceSupervisor

__all__ = [
    "CommandDispatcher",
    "DeviceRegistry",
    "DeviceSession",
    "DeviceSupervisor",
    "DispatchReceipt",
    "InboundRouter",
    "RegisterFrame",
    "SessionState",
    "StatusFrame",
    "parse_frame",
]
