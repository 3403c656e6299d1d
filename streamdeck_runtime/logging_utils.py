from __future__ import annotations

import contextlib
import logging
import os
import sys
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Iterable

from .jsonutil import dumps

DEFAULT_MAX_BYTES = 5_000_000
DEFAULT_BACKUP_COUNT = 3
DEFAULT_FORMAT = (
    "%(asctime)sZ [%(levelname)s] %(name)s:%(lineno)d "
    "(pid=%(process)d) | %(message)s"
)
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS: tuple[str, ...] = (
    "asyncio",
    "websockets",
)

# records from these loggers are never forwarded to the host
_HOST_EXCLUDED_PREFIXES: tuple[str, ...] = (
    "websockets",
    "asyncio",
    "streamdeck_runtime.transport",
)


class _UTCFormatter(logging.Formatter):
    """Formatter that renders timestamps in UTC."""

    converter = time.gmtime


_LOG_RECORD_RESERVED = set(logging.LogRecord(None, 0, "", 0, "", (), None).__dict__.keys())


class JsonFormatter(logging.Formatter):
    """Structured logging formatter producing JSON payloads."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - short summary sufficient
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .replace(tzinfo=None)
            .isoformat(timespec="milliseconds")
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "line": record.lineno,
            "msg": record.getMessage(),
            "process": record.process,
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info

        for key, value in record.__dict__.items():
            if key in payload or key.startswith("_") or key in _LOG_RECORD_RESERVED:
                continue
            payload[key] = value

        return dumps(payload, default=str)


def _parse_log_level(value: str | int | None) -> int:
    if value is None or value == "":
        return logging.INFO
    if isinstance(value, int):
        return value
    level = str(value).strip().upper()
    if level.isdigit():
        return int(level)
    resolved = logging.getLevelName(level)
    return resolved if isinstance(resolved, int) else logging.INFO


def _env_flag(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def setup_stdout_logging(
    *,
    level: int = logging.INFO,
    fmt: str | None = None,
    datefmt: str | None = None,
    propagate_off: Iterable[str] = _NOISY_LOGGERS,
) -> logging.StreamHandler:
    """Ensure a single ``StreamHandler`` to ``sys.stdout`` exists on the root logger.

    Stream handlers pointing at stdout or stderr (for example those added by
    ``logging.basicConfig``) are removed so records are not emitted twice.
    """

    root = logging.getLogger()
    root.setLevel(level)

    sentinel_key = "_streamdeck_stdout_handler"
    existing = getattr(root, sentinel_key, None)
    console_streams = {
        sys.stdout,
        sys.stderr,
        getattr(sys, "__stdout__", None),
        getattr(sys, "__stderr__", None),
    }

    stream_handler: logging.StreamHandler | None = None
    if isinstance(existing, logging.StreamHandler) and existing in root.handlers:
        stream_handler = existing
    for handler in list(root.handlers):
        if handler is stream_handler or type(handler) is not logging.StreamHandler:
            continue
        if getattr(handler, "stream", None) in console_streams:
            root.removeHandler(handler)
            with contextlib.suppress(Exception):  # pragma: no cover - best effort
                handler.close()

    if stream_handler is None:
        stream_handler = logging.StreamHandler(sys.stdout)
        root.addHandler(stream_handler)
    else:
        stream_handler.setStream(sys.stdout)

    stream_handler.setLevel(level)
    if fmt:
        stream_handler.setFormatter(_UTCFormatter(fmt, datefmt=datefmt))

    for name in propagate_off:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    setattr(root, sentinel_key, stream_handler)
    return stream_handler


def configure_runtime_logging(
    *,
    level: str | int | None = None,
    console: bool | None = None,
    logfile: str | Path | None = None,
    fmt: str | None = None,
    datefmt: str | None = None,
    max_bytes: int | None = None,
    backup_count: int | None = None,
    json_logs: bool | None = None,
    force: bool = False,
) -> Path | None:
    """Configure root logging handlers for the plugin process.

    Arguments left as ``None`` fall back to ``STREAMDECK_LOG_LEVEL``,
    ``STREAMDECK_LOG_CONSOLE``, ``STREAMDECK_LOG_FILE`` and
    ``STREAMDECK_LOG_JSON``. Returns the log file path, or ``None`` when only
    console logging is configured.
    """

    resolved_level = _parse_log_level(level if level is not None else os.getenv("STREAMDECK_LOG_LEVEL"))

    if console is None:
        console = _env_flag("STREAMDECK_LOG_CONSOLE")
        if console is None:
            console = True

    if json_logs is None:
        json_logs = bool(_env_flag("STREAMDECK_LOG_JSON"))

    resolved_format = fmt or DEFAULT_FORMAT
    resolved_datefmt = datefmt or DEFAULT_DATEFMT
    if json_logs:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = _UTCFormatter(resolved_format, datefmt=resolved_datefmt)

    root = logging.getLogger()
    if force:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            with contextlib.suppress(Exception):
                handler.close()
    root.setLevel(resolved_level)

    log_path: Path | None = None
    raw_path = logfile or os.getenv("STREAMDECK_LOG_FILE")
    if raw_path:
        log_path = Path(raw_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path = log_path.resolve()

        file_handler: logging.Handler | None = None
        for handler in list(root.handlers):
            base = getattr(handler, "baseFilename", None)
            if base is None or Path(base) != log_path:
                continue
            if file_handler is None and isinstance(handler, RotatingFileHandler):
                file_handler = handler
                continue
            root.removeHandler(handler)
            with contextlib.suppress(Exception):
                handler.close()

        if file_handler is None:
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=max_bytes or DEFAULT_MAX_BYTES,
                backupCount=backup_count or DEFAULT_BACKUP_COUNT,
                encoding="utf-8",
            )
            root.addHandler(file_handler)
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(formatter)

    if console:
        stream_handler = setup_stdout_logging(level=resolved_level)
        stream_handler.setFormatter(formatter)

    root.debug("Logging initialised", extra={"log_file": str(log_path) if log_path else None})
    return log_path


class HostLogHandler(logging.Handler):
    """Forward log records to the host's plugin log through ``logMessage``.

    ``offer`` is a non-blocking callable returning ``False`` when the record
    could not be queued; such records are dropped silently. Records from the
    transport layer are never forwarded.
    """

    def __init__(
        self,
        offer: Callable[[str], bool],
        level: int = logging.INFO,
        exclude: Iterable[str] = _HOST_EXCLUDED_PREFIXES,
    ) -> None:
        super().__init__(level)
        self._offer = offer
        self._exclude = tuple(exclude)
        self.dropped = 0
        self.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(self._exclude):
            return False
        return super().filter(record)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
        except Exception:  # pragma: no cover - formatting errors
            self.handleError(record)
            return
        if not self._offer(message):
            self.record_drop()

    def record_drop(self) -> None:
        """Count one record that never reached the host."""
        self.dropped += 1


def _normalize_for_log(value: Any, *, max_string: int) -> Any:
    if isinstance(value, dict):
        return {
            str(k): _normalize_for_log(v, max_string=max_string)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_normalize_for_log(v, max_string=max_string) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, str):
        if len(value) <= max_string:
            return value
        preview = value[: max_string]
        return f"{preview}...({len(value)} chars)"
    if isinstance(value, (int, float, bool)) or value is None:
        return value
    return str(value)


def serialize_for_log(value: Any, *, max_string: int = 256) -> str:
    """Return a JSON-formatted string safe for logging.

    Long strings (base64 images for instance) are truncated.
    """
    try:
        return dumps(_normalize_for_log(value, max_string=max_string), sort_keys=True)
    except (TypeError, ValueError):
        return repr(value)


__all__ = [
    "JsonFormatter",
    "HostLogHandler",
    "setup_stdout_logging",
    "configure_runtime_logging",
    "serialize_for_log",
]
