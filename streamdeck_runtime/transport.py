"""WebSocket transport to the host application."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import TransportClosed, TransportError

logger = logging.getLogger(__name__)

# RFC 6455 close codes
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_ABNORMAL = 1006

EXPECTED_CLOSE_CODES = frozenset({CLOSE_NORMAL, CLOSE_GOING_AWAY, CLOSE_ABNORMAL})

# inbound frame limit
MAX_MESSAGE_SIZE = 16 * 1024 * 1024


def _closed_error(exc: ConnectionClosed) -> TransportClosed:
    rcvd = getattr(exc, "rcvd", None)
    if rcvd is None:
        # no close frame received: the TCP connection dropped
        return TransportClosed(CLOSE_ABNORMAL, "")
    return TransportClosed(rcvd.code, rcvd.reason or "")


def is_expected_close(exc: BaseException) -> bool:
    """Return ``True`` for normal, going-away and abnormal closures."""
    return isinstance(exc, TransportClosed) and exc.code in EXPECTED_CLOSE_CODES


class Transport:
    """Message-oriented wrapper around a ``websockets`` client connection.

    :meth:`recv` must only be called by one reader and :meth:`send` by one
    writer at a time.
    """

    def __init__(self, ws: Any, url: str = "") -> None:
        self._ws = ws
        self.url = url
        self._closed = False

    @classmethod
    async def connect(
        cls,
        url: str,
        *,
        open_timeout: float | None = 10.0,
        ping_interval: float | None = None,
        close_timeout: float | None = 2.0,
    ) -> "Transport":
        """Dial ``url``; raise :class:`TransportError` when it fails."""
        try:
            ws = await websockets.connect(
                url,
                open_timeout=open_timeout,
                ping_interval=ping_interval,
                close_timeout=close_timeout,
                max_size=MAX_MESSAGE_SIZE,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise TransportError(f"cannot init websocket connection to {url}: {exc}") from exc
        logger.debug("Connected to %s", url)
        return cls(ws, url)

    @property
    def closed(self) -> bool:
        return self._closed

    async def recv(self) -> str | bytes:
        """Read one message."""
        try:
            return await self._ws.recv()
        except ConnectionClosed as exc:
            raise _closed_error(exc) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"read message: {exc}") from exc

    async def send(self, message: str | bytes) -> None:
        """Write one message."""
        try:
            await self._ws.send(message)
        except ConnectionClosed as exc:
            raise _closed_error(exc) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"write message: {exc}") from exc

    async def close(self) -> None:
        """Close the connection; idempotent and never raises."""
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(Exception):
            await self._ws.close()


__all__ = [
    "CLOSE_NORMAL",
    "CLOSE_GOING_AWAY",
    "CLOSE_ABNORMAL",
    "EXPECTED_CLOSE_CODES",
    "Transport",
    "is_expected_close",
]
