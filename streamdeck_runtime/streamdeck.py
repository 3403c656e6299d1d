"""Connection lifecycle and event dispatch for a Stream Deck plugin.

A :class:`StreamDeck` owns one WebSocket to the host and three asyncio
tasks sharing a single stop event:

* the reader pulls messages from the transport, decodes them and puts them
  on the inbound channel;
* the writer takes outbound events from the outbound channel, encodes them
  and writes them to the transport;
* the dispatcher takes inbound events and starts one task per registered
  handler for each of them, without waiting for those tasks.

Typical use::

    config = load_config()
    deck = await StreamDeck.connect(config)

    @deck.handler
    async def on_event(event):
        if event.event == EventName.KEY_DOWN:
            await deck.show_ok(event.context)

    await deck.run()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Any, Awaitable, Callable, Mapping, Optional, Set, Tuple, TypeVar, Union

from . import commands
from .channel import EventChannel
from .commands import OutboundEvent
from .config import Info, PluginConfig
from .errors import ChannelClosed, DecodeError, HandlerError, OutboundQueueFull, TransportClosed, TransportError
from .events import InboundEvent, Target, decode_event
from .handlers import Handler, HandlerFunc, HandlerRegistry, invoke
from .logging_utils import HostLogHandler, serialize_for_log
from .transport import Transport, is_expected_close

logger = logging.getLogger(__name__)

T = TypeVar("T")

Connector = Callable[[str], Awaitable[Transport]]


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class StreamDeck:
    """Client runtime for one plugin connection."""

    def __init__(self, config: PluginConfig, transport: Transport, *, debug: bool | None = None) -> None:
        self.config = config
        self.debug = config.debug if debug is None else debug
        self.handlers = HandlerRegistry()
        self.inbound: EventChannel[InboundEvent] = EventChannel(config.inbound_queue_size)
        self.outbound: EventChannel[OutboundEvent] = EventChannel(config.outbound_queue_size)
        self.stop_event = asyncio.Event()
        self._transport = transport
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started = False
        self._handler_tasks: Set[asyncio.Task] = set()
        self._signals: list[int] = []

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    @classmethod
    async def connect(
        cls,
        config: PluginConfig,
        *,
        connector: Connector = Transport.connect,
        debug: bool | None = None,
    ) -> "StreamDeck":
        """Dial the host and register the plugin.

        Raises :class:`TransportError` when the dial or the registration
        write fails. Nothing is retried.
        """
        transport = await connector(config.url)
        deck = cls(config, transport, debug=debug)
        await deck._register()
        return deck

    async def _register(self) -> None:
        message = commands.register(self.config.register_event, self.uuid)
        try:
            await self._transport.send(message.encode())
        except TransportError as exc:
            await self._transport.close()
            raise TransportError(f"cannot register plugin: {exc}") from exc
        logger.info("Registered plugin %s with %s", self.uuid, self.config.register_event)

    @property
    def uuid(self) -> str:
        return self.config.plugin_uuid

    @property
    def info(self) -> Info:
        return self.config.info

    @property
    def transport(self) -> Transport:
        return self._transport

    # ------------------------------------------------------------------
    # Handler registration
    # ------------------------------------------------------------------

    def register(self, *handlers: Union[Handler, HandlerFunc]) -> None:
        """Add handlers; must be called before :meth:`run`."""
        self.handlers.register(*handlers)

    def handler(self, func: T) -> T:
        """Decorator form of :meth:`register`."""
        self.register(func)  # type: ignore[arg-type]
        return func

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self, *, install_signal_handlers: bool = True) -> None:
        """Serve the plugin until the host disconnects or :meth:`stop` is called."""
        if self._started:
            raise RuntimeError("StreamDeck.run() may only be called once")
        self._started = True
        self.handlers.freeze()
        self._loop = asyncio.get_running_loop()
        if install_signal_handlers:
            self._install_signal_handlers()

        reader = asyncio.create_task(self._reader(), name="streamdeck-reader")
        writer = asyncio.create_task(self._writer(), name="streamdeck-writer")
        try:
            await self._dispatch()
        finally:
            self.stop_event.set()
            self.inbound.close()
            # unblocks a read or write still in flight
            await self._transport.close()
            results = await asyncio.gather(reader, writer, return_exceptions=True)
            for task, result in zip((reader, writer), results):
                if isinstance(result, Exception):
                    logger.error("%s failed", task.get_name(), exc_info=result)
            self._remove_signal_handlers()
            if self._handler_tasks:
                logger.debug("Leaving %d handler task(s) running", len(self._handler_tasks))

    def stop(self) -> None:
        """Trigger shutdown; safe to call from any thread or a signal handler."""
        loop = self._loop
        if loop is not None and _running_loop() is not loop:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(self.stop_event.set)
            return
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def _install_signal_handlers(self) -> None:
        assert self._loop is not None
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):  # pragma: no cover - non-posix or not main thread
                continue
            self._signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        if self._loop is None:
            return
        for sig in self._signals:
            with contextlib.suppress(Exception):
                self._loop.remove_signal_handler(sig)
        self._signals.clear()

    def _on_signal(self, sig: int) -> None:
        logger.info("Received %s, shutting down", signal.Signals(sig).name)
        self.stop_event.set()

    async def _next_or_stop(self, channel: EventChannel[T]) -> Tuple[bool, Optional[T]]:
        """Wait for the next item of ``channel`` or the stop event.

        Returns ``(False, None)`` when stopping or when the channel has
        ended. The stop event wins when both are ready.
        """
        if self.stop_event.is_set():
            return False, None
        getter = asyncio.ensure_future(channel.get())
        stopper = asyncio.ensure_future(self.stop_event.wait())
        try:
            await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not getter.done():
                getter.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await getter
        if getter.cancelled():
            return False, None
        # read before the stop check; an unread task exception is logged on collection
        exc = getter.exception()
        if self.stop_event.is_set() or isinstance(exc, ChannelClosed):
            return False, None
        if exc is not None:
            raise exc
        return True, getter.result()

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _reader(self) -> None:
        if self.debug:
            logger.debug("reader started")
        try:
            while not self.stop_event.is_set():
                try:
                    raw = await self._transport.recv()
                except TransportError as exc:
                    if self.stop_event.is_set() or is_expected_close(exc):
                        logger.info("Connection to host closed: %s", exc)
                    elif isinstance(exc, TransportClosed):
                        logger.error("unexpected close connection: %s", exc)
                    else:
                        logger.error("read message: %s", exc)
                    return

                try:
                    event = decode_event(raw)
                except DecodeError as exc:
                    logger.error("decode message %s: %s", serialize_for_log(raw, max_string=120), exc)
                    continue

                try:
                    await self.inbound.put(event)
                except ChannelClosed:
                    return
        finally:
            self.inbound.close()
            await self._transport.close()
            if self.debug:
                logger.debug("reader stopped")

    async def _writer(self) -> None:
        if self.debug:
            logger.debug("writer started")
        try:
            while True:
                ok, event = await self._next_or_stop(self.outbound)
                if not ok or event is None:
                    return
                try:
                    await self._transport.send(event.encode())
                except TransportError as exc:
                    if self.stop_event.is_set():
                        logger.debug("write event [%s] aborted by shutdown", event.event)
                    else:
                        logger.error(
                            "write event [%s] for action [%s] context [%s]: %s",
                            event.event,
                            event.action or "",
                            event.context or "",
                            exc,
                        )
                    return
        finally:
            dropped = self.outbound.discard()
            if dropped:
                logger.debug("Dropped %d unsent outbound event(s)", dropped)
            if self.debug:
                logger.debug("writer stopped")

    async def _dispatch(self) -> None:
        if self.debug:
            logger.debug("dispatcher started")
        while True:
            ok, event = await self._next_or_stop(self.inbound)
            if not ok or event is None:
                if self.debug:
                    logger.debug("dispatcher stopped")
                return
            if self.debug:
                logger.debug("received event [%s] for action [%s]", event.event, event.action)
            for func in self.handlers:
                task = asyncio.create_task(self._run_handler(func, event))
                self._handler_tasks.add(task)
                task.add_done_callback(self._handler_tasks.discard)

    async def _run_handler(self, func: HandlerFunc, event: InboundEvent) -> None:
        try:
            await invoke(func, event)
        except HandlerError as exc:
            logger.error("event [%s] action [%s]: %s", event.event, event.action, exc.cause)
            try:
                await self.alert(event.context)
            except ChannelClosed:
                logger.debug("alert for %s not sent: outbound channel closed", event.context)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, event: OutboundEvent) -> None:
        """Queue ``event`` for the writer, waiting while the queue is full.

        Raises :class:`ChannelClosed` once the writer has stopped.
        """
        await self.outbound.put(event)

    def enqueue(self, event: OutboundEvent) -> None:
        """Queue ``event`` from synchronous code.

        From a thread other than the event loop's this blocks until the event
        is queued. On the loop thread it never blocks and raises
        :class:`OutboundQueueFull` when the queue is at capacity.
        """
        loop = self._loop
        if loop is None or _running_loop() is loop:
            try:
                self.outbound.put_nowait(event)
            except asyncio.QueueFull:
                raise OutboundQueueFull(f"outbound queue is full ({self.outbound.maxsize})") from None
            return
        asyncio.run_coroutine_threadsafe(self.outbound.put(event), loop).result()

    def offer(self, event: OutboundEvent, on_drop: Optional[Callable[[], None]] = None) -> bool:
        """Queue ``event`` if possible without blocking; return ``False`` if dropped.

        From a thread other than the event loop's the put is handed to the
        loop, so ``True`` only means the event was handed over. If the loop
        then finds the queue full or closed, ``on_drop`` is called there.
        """
        if self.outbound.closed:
            return False
        loop = self._loop
        if loop is None or _running_loop() is loop:
            return self._offer_now(event)
        try:
            loop.call_soon_threadsafe(self._offer_now, event, on_drop)
        except RuntimeError:
            return False
        return True

    def _offer_now(self, event: OutboundEvent, on_drop: Optional[Callable[[], None]] = None) -> bool:
        try:
            self.outbound.put_nowait(event)
        except (asyncio.QueueFull, ChannelClosed):
            if on_drop is not None:
                on_drop()
            return False
        return True

    def log_handler(self, level: int = logging.INFO) -> HostLogHandler:
        """Return a logging handler writing records to the host's log file."""

        def forward(message: str) -> bool:
            return self.offer(commands.log_message(message), on_drop=handler.record_drop)

        handler = HostLogHandler(forward, level=level)
        return handler

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def alert(self, context: str) -> None:
        await self.send(commands.show_alert(context))

    async def show_ok(self, context: str) -> None:
        await self.send(commands.show_ok(context))

    async def open_url(self, url: str) -> None:
        await self.send(commands.open_url(url))

    async def log(self, message: str, *args: Any) -> None:
        """Write ``message % args`` to the host's plugin log."""
        await self.send(commands.log_message(message % args if args else message))

    async def set_title(
        self,
        context: str,
        title: Optional[str],
        target: Target = Target.HARDWARE_AND_SOFTWARE,
        state: Optional[int] = None,
    ) -> None:
        await self.send(commands.set_title(context, title, target, state))

    async def set_image(
        self,
        context: str,
        image: Optional[str],
        target: Target = Target.HARDWARE_AND_SOFTWARE,
        state: Optional[int] = None,
    ) -> None:
        await self.send(commands.set_image(context, image, target, state))

    async def set_state(self, context: str, state: int) -> None:
        await self.send(commands.set_state(context, state))

    async def set_settings(self, context: str, settings: Mapping[str, Any]) -> None:
        await self.send(commands.set_settings(context, settings))

    async def get_settings(self, context: str) -> None:
        await self.send(commands.get_settings(context))

    async def set_global_settings(self, settings: Mapping[str, Any]) -> None:
        await self.send(commands.set_global_settings(self.uuid, settings))

    async def get_global_settings(self) -> None:
        await self.send(commands.get_global_settings(self.uuid))

    async def switch_to_profile(self, device: str, profile: str) -> None:
        await self.send(commands.switch_to_profile(self.uuid, device, profile))

    async def send_to_property_inspector(self, action: str, context: str, payload: Mapping[str, Any]) -> None:
        await self.send(commands.send_to_property_inspector(action, context, payload))


__all__ = ["StreamDeck", "Connector"]
