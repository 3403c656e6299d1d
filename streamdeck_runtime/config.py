"""Startup configuration for a plugin process.

The host launches a plugin with four mandatory arguments::

    -port 28196 -pluginUUID <uuid> -registerEvent registerPlugin -info '{...}'

:func:`load_config` parses them (plus a few runtime tunables read from
optional flags or ``STREAMDECK_*`` environment variables) into a validated
:class:`PluginConfig` that is passed explicitly to the engine.
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Any, List, Mapping, NoReturn, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .jsonutil import JSONDecodeError, loads

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_QUEUE_SIZE = 256

_TRUTHY = {"1", "true", "yes", "on"}


class _InfoSchema(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ApplicationInfo(_InfoSchema):
    font: str = ""
    language: str = ""
    platform: str = ""
    platform_version: str = Field("", alias="platformVersion")
    version: str = ""


class PluginInfo(_InfoSchema):
    uuid: str = ""
    version: str = ""


class Colors(_InfoSchema):
    button_pressed_background_color: str = Field("", alias="buttonPressedBackgroundColor")
    button_pressed_border_color: str = Field("", alias="buttonPressedBorderColor")
    button_pressed_text_color: str = Field("", alias="buttonPressedTextColor")
    disabled_color: str = Field("", alias="disabledColor")
    highlight_color: str = Field("", alias="highlightColor")
    mouse_down_color: str = Field("", alias="mouseDownColor")


class Size(_InfoSchema):
    columns: int = 0
    rows: int = 0


class Device(_InfoSchema):
    id: str = ""
    name: str = ""
    size: Size = Field(default_factory=Size)
    type: int = 0


class Info(_InfoSchema):
    """Host and device information sent by the host on launch."""

    application: ApplicationInfo = Field(default_factory=ApplicationInfo)
    plugin: PluginInfo = Field(default_factory=PluginInfo)
    device_pixel_ratio: int = Field(0, alias="devicePixelRatio")
    colors: Colors = Field(default_factory=Colors)
    devices: List[Device] = Field(default_factory=list)

    def device(self, device_id: str) -> Optional[Device]:
        for dev in self.devices:
            if dev.id == device_id:
                return dev
        return None


class PluginConfig(BaseModel):
    """Validated startup configuration."""

    model_config = ConfigDict(frozen=True)

    port: int = Field(ge=1, le=65535)
    plugin_uuid: str = Field(min_length=1)
    register_event: str = Field(min_length=1)
    info: Info = Field(default_factory=Info)
    host: str = DEFAULT_HOST
    debug: bool = False
    inbound_queue_size: int = Field(DEFAULT_QUEUE_SIZE, ge=1)
    outbound_queue_size: int = Field(DEFAULT_QUEUE_SIZE, ge=1)

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"


def parse_info(raw: str | None) -> Info:
    """Parse the ``-info`` JSON document.

    Raises :class:`ConfigurationError` when ``raw`` is empty, malformed, or
    not a JSON object.
    """
    if not raw or not raw.strip():
        raise ConfigurationError("missing or invalid -info")
    try:
        data = loads(raw)
    except JSONDecodeError as exc:
        raise ConfigurationError(f"missing or invalid -info: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError("missing or invalid -info: expected a JSON object")
    try:
        return Info.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"missing or invalid -info: {exc}") from exc


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that raises instead of exiting the process."""

    def error(self, message: str) -> NoReturn:
        raise ConfigurationError(message)


def build_parser() -> argparse.ArgumentParser:
    p = _ArgumentParser(
        description="Stream Deck plugin runtime",
        allow_abbrev=False,
        add_help=False,
    )
    # The host passes single-dash long flags.
    p.add_argument("-port", "--port", dest="port", default=None, help="WebSocket port of the host")
    p.add_argument("-pluginUUID", "--pluginUUID", dest="plugin_uuid", default=None, help="Unique identifier used to register the plugin")
    p.add_argument("-registerEvent", "--registerEvent", dest="register_event", default=None, help="Event name used to register the plugin")
    p.add_argument("-info", "--info", dest="info", default=None, help="JSON document with application and device information")
    p.add_argument("--debug", action="store_true", default=None, help="Log loop lifecycle and every received event")
    p.add_argument("--log-level", dest="log_level", default=None, help="Root log level (default INFO)")
    p.add_argument("--log-file", dest="log_file", default=None, help="Write logs to a rotating file")
    p.add_argument("--log-json", dest="log_json", action="store_true", default=None, help="Emit JSON log lines")
    return p


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return str(env.get(name, "")).strip().lower() in _TRUTHY


def _parse_port(raw: Any) -> int:
    if raw in (None, ""):
        raise ConfigurationError("missing -port")
    try:
        port = int(str(raw).strip())
    except ValueError as exc:
        raise ConfigurationError(f"invalid -port {raw!r}") from exc
    if port == 0:
        raise ConfigurationError("missing -port")
    if not 0 < port < 65536:
        raise ConfigurationError(f"invalid -port {port}: must be between 1 and 65535")
    return port


def config_from_namespace(
    args: argparse.Namespace, env: Mapping[str, str] | None = None
) -> PluginConfig:
    """Validate parsed arguments into a :class:`PluginConfig`."""
    env = os.environ if env is None else env

    port = _parse_port(args.port)
    plugin_uuid = (args.plugin_uuid or "").strip()
    if not plugin_uuid:
        raise ConfigurationError("missing -pluginUUID")
    register_event = (args.register_event or "").strip()
    if not register_event:
        raise ConfigurationError("missing -registerEvent")
    info = parse_info(args.info)

    debug = bool(args.debug) if args.debug is not None else _env_flag(env, "STREAMDECK_DEBUG")
    try:
        return PluginConfig(
            port=port,
            plugin_uuid=plugin_uuid,
            register_event=register_event,
            info=info,
            host=(env.get("STREAMDECK_HOST") or DEFAULT_HOST).strip(),
            debug=debug,
            inbound_queue_size=_env_int(env, "STREAMDECK_INBOUND_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
            outbound_queue_size=_env_int(env, "STREAMDECK_OUTBOUND_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
        )
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse ``argv`` ignoring arguments the runtime does not know."""
    args, unknown = build_parser().parse_known_args(argv)
    if unknown:
        logger.debug("Ignoring unknown arguments: %s", unknown)
    return args


def load_config(
    argv: Sequence[str] | None = None, env: Mapping[str, str] | None = None
) -> PluginConfig:
    """Build a :class:`PluginConfig` from command-line arguments.

    Raises :class:`ConfigurationError` when any of the four mandatory inputs
    is missing or the ``-info`` document is not valid JSON.
    """
    return config_from_namespace(parse_args(argv), env)


__all__ = [
    "ApplicationInfo",
    "PluginInfo",
    "Colors",
    "Size",
    "Device",
    "Info",
    "PluginConfig",
    "parse_info",
    "build_parser",
    "parse_args",
    "config_from_namespace",
    "load_config",
]
