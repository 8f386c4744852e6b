"""Reference machine agent for the WebCNC device channel."""

from webcnc.agent.client import CNCAgentClient
from webcnc.agent.machine import MachineAgent

__all__ = ["CNCAgentClient", "MachineAgent"]
