"""Exceptions raised by the device connection core."""

from __future__ import annotations


class WebCNCError(Exception):
    """Base class for WebCNC failures."""


class FrameError(WebCNCError):
    """An inbound device frame could not be applied."""


class MalformedFrameError(FrameError):
    """Raised when a frame is not valid UTF-8 JSON of the expected shape."""


class UnknownFrameTypeError(FrameError):
    """Raised when a well-formed frame carries an unrecognised ``type``."""

    def __init__(self, frame_type: object) -> None:
        super().__init__(f"Unknown frame type: {frame_type!r}")
        self.frame_type = frame_type


class NotConnectedError(WebCNCError):
    """Raised when a command targets a UUID with no live session."""

    def __init__(self, uuid: str) -> None:
        super().__init__(f"Device {uuid!r} is not connected")
        self.uuid = uuid


class DeliveryError(WebCNCError):
    """Raised when the transport fails while sending a frame to a device."""

    def __init__(self, uuid: str | None, session_id: str, reason: str) -> None:
        super().__init__(f"Send to {uuid or session_id} failed: {reason}")
        self.uuid = uuid
        self.session_id = session_id
        self.reason = reason


__all__ = [
    "WebCNCError",
    "FrameError",
    "MalformedFrameError",
    "UnknownFrameTypeError",
    "NotConnectedError",
    "DeliveryError",
]
