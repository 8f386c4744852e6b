"""In-memory registry of connected machines.

Maps each device UUID to the session currently serving it.  At most one
session is mapped to a UUID at any time: a later ``register`` for the same
UUID replaces the mapping and the displaced session is simply forgotten.

Every operation takes the same lock, so session handlers and dispatch
requests never observe a half-updated entry.  The lock guards dictionary
access only and is never held while awaiting network I/O.
"""

from __future__ import annotations

import threading

from webcnc.devices.session import DeviceSession


class DeviceRegistry:
    """Concurrency-safe ``uuid -> DeviceSession`` mapping."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, DeviceSession] = {}

    def set(self, uuid: str, session: DeviceSession) -> DeviceSession | None:
        """Map *uuid* to *session* and return the session it displaced."""
        with self._lock:
            previous = self._sessions.get(uuid)
            self._sessions[uuid] = session
            return None if previous is session else previous

    def get(self, uuid: str) -> DeviceSession | None:
        with self._lock:
            return self._sessions.get(uuid)

    def remove_if_current(self, uuid: str, session: DeviceSession) -> bool:
        """Delete the entry for *uuid* only if it still maps to *session*.

        A session that was replaced by a newer registration must not evict
        its successor when it finally closes.
        """
        with self._lock:
            if self._sessions.get(uuid) is not session:
                return False
            del self._sessions[uuid]
            return True

    def entries(self) -> list[tuple[str, DeviceSession]]:
        """Return a point-in-time snapshot of all entries."""
        with self._lock:
            return list(self._sessions.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, uuid: object) -> bool:
        with self._lock:
            return uuid in self._sessions
