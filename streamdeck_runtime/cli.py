"""Entry points for running a plugin process."""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import sys
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from .config import PluginConfig, build_parser, config_from_namespace
from .errors import ConfigurationError, TransportError
from .handlers import Handler, HandlerFunc, resolve_handler
from .logging_utils import configure_runtime_logging
from .streamdeck import StreamDeck

logger = logging.getLogger(__name__)

SetupHook = Callable[[StreamDeck], Union[Awaitable[None], None]]

EXIT_OK = 0
EXIT_TRANSPORT = 1
EXIT_CONFIG = 2


def load_object(path: str) -> Any:
    """Import ``"package.module:attribute"`` and return the attribute."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"invalid import path {path!r}, expected 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"cannot import {module_name!r}: {exc}") from exc
    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise ConfigurationError(f"{module_name!r} has no attribute {attr!r}") from exc
    return obj


def check_handlers(handlers: Sequence[Any]) -> None:
    """Raise :class:`ConfigurationError` unless every entry can be registered."""
    for handler in handlers:
        try:
            resolve_handler(handler)
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc


async def serve(
    config: PluginConfig,
    *handlers: Union[Handler, HandlerFunc],
    setup: Sequence[SetupHook] = (),
    forward_logs: bool = True,
) -> None:
    """Connect, register ``handlers`` and run until shutdown.

    Each ``setup`` hook receives the connected :class:`StreamDeck` before it
    starts, so it can register handlers that send commands back.
    """
    deck = await StreamDeck.connect(config)
    host_handler = None
    try:
        deck.register(*handlers)
        for hook in setup:
            result = hook(deck)
            if inspect.isawaitable(result):
                await result

        if forward_logs:
            host_handler = deck.log_handler()
            logging.getLogger().addHandler(host_handler)
        await deck.run()
    finally:
        if host_handler is not None:
            logging.getLogger().removeHandler(host_handler)
        await deck.transport.close()


def run_plugin(
    *handlers: Union[Handler, HandlerFunc],
    argv: Optional[Sequence[str]] = None,
    setup: Sequence[SetupHook] = (),
    forward_logs: bool = True,
) -> int:
    """Parse the host's launch arguments and serve the plugin.

    Returns a process exit code: ``0`` after a clean shutdown, ``2`` for a
    configuration error and ``1`` when the host cannot be reached.
    """
    parser = build_parser()
    parser.add_argument(
        "--setup",
        dest="setup",
        action="append",
        default=[],
        metavar="MODULE:ATTR",
        help="Callable receiving the StreamDeck instance before it starts (repeatable)",
    )
    parser.add_argument(
        "--handler",
        dest="handlers",
        action="append",
        default=[],
        metavar="MODULE:ATTR",
        help="Handler to register (repeatable)",
    )
    try:
        args, _unknown = parser.parse_known_args(argv)
    except ConfigurationError as exc:
        configure_runtime_logging()
        logger.error("Invalid arguments: %s", exc)
        return EXIT_CONFIG

    configure_runtime_logging(
        level="DEBUG" if args.debug else args.log_level,
        logfile=args.log_file,
        json_logs=args.log_json,
    )

    try:
        config = config_from_namespace(args)
        hooks = list(setup) + [load_object(p) for p in args.setup]
        all_handlers = list(handlers) + [load_object(p) for p in args.handlers]
        check_handlers(all_handlers)
        for hook in hooks:
            if not callable(hook):
                raise ConfigurationError(f"setup hook must be callable, got {hook!r}")
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG

    try:
        asyncio.run(serve(config, *all_handlers, setup=hooks, forward_logs=forward_logs))
    except TransportError as exc:
        logger.error("%s", exc)
        return EXIT_TRANSPORT
    except KeyboardInterrupt:
        logger.info("Plugin interrupted")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_plugin(argv=list(argv) if argv is not None else None)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
