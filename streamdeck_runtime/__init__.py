"""Client runtime for Stream Deck plugins."""

from ._version import __version__
from .commands import OutboundEvent
from .config import Info, PluginConfig, load_config
from .errors import (
    ChannelClosed,
    ConfigurationError,
    DecodeError,
    HandlerError,
    OutboundQueueFull,
    StreamDeckError,
    TransportClosed,
    TransportError,
)
from .events import EventName, InboundEvent, Target, decode_event
from .handlers import Handler, HandlerFunc
from .streamdeck import StreamDeck
from .cli import run_plugin, serve

__all__ = [
    "__version__",
    "StreamDeck",
    "run_plugin",
    "serve",
    "load_config",
    "PluginConfig",
    "Info",
    "EventName",
    "Target",
    "InboundEvent",
    "OutboundEvent",
    "decode_event",
    "Handler",
    "HandlerFunc",
    "StreamDeckError",
    "ConfigurationError",
    "TransportError",
    "TransportClosed",
    "DecodeError",
    "HandlerError",
    "ChannelClosed",
    "OutboundQueueFull",
]
