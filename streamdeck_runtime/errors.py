"""Exception hierarchy shared by the runtime."""

from __future__ import annotations

from typing import Any


class StreamDeckError(Exception):
    """Base class for every error raised by :mod:`streamdeck_runtime`."""


class ConfigurationError(StreamDeckError, ValueError):
    """Raised when startup inputs are missing or invalid."""


class TransportError(StreamDeckError):
    """Raised when dialing, reading from or writing to the host fails."""


class TransportClosed(TransportError):
    """Raised by a read or write once the WebSocket has been closed."""

    def __init__(self, code: int | None = None, reason: str = "") -> None:
        self.code = code
        self.reason = reason
        detail = f"connection closed (code={code})"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)


class DecodeError(StreamDeckError, ValueError):
    """Raised when a single inbound message cannot be decoded."""


class HandlerError(StreamDeckError):
    """A registered handler reported a failure for ``event``."""

    def __init__(self, handler: str, event: Any, cause: BaseException) -> None:
        self.handler = handler
        self.event = event
        self.cause = cause
        super().__init__(f"handler {handler} failed: {cause}")


class ChannelClosed(StreamDeckError):
    """Raised by :class:`~streamdeck_runtime.channel.EventChannel` once closed."""


class OutboundQueueFull(StreamDeckError):
    """Raised by a non-blocking enqueue when the outbound queue is at capacity."""


__all__ = [
    "StreamDeckError",
    "ConfigurationError",
    "TransportError",
    "TransportClosed",
    "DecodeError",
    "HandlerError",
    "ChannelClosed",
    "OutboundQueueFull",
]
