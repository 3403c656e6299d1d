import asyncio
import threading

import pytest

from streamdeck_runtime.errors import HandlerError
from streamdeck_runtime.events import decode_event
from streamdeck_runtime.handlers import HandlerRegistry, invoke

EVENT = decode_event({"event": "keyDown", "context": "c1", "action": "a1"})


@pytest.mark.asyncio
async def test_invoke_async_handler():
    seen = []

    async def handler(event):
        seen.append(event.context)

    await invoke(handler, EVENT)
    assert seen == ["c1"]


@pytest.mark.asyncio
async def test_sync_handler_runs_off_the_loop_thread():
    threads = []

    def handler(event):
        threads.append(threading.get_ident())

    await invoke(handler, EVENT)
    assert threads and threads[0] != threading.get_ident()


@pytest.mark.asyncio
async def test_raised_exception_becomes_handler_error():
    def handler(event):
        raise KeyError("missing")

    with pytest.raises(HandlerError) as info:
        await invoke(handler, EVENT)
    assert isinstance(info.value.cause, KeyError)
    assert info.value.event is EVENT
    assert "handler" in info.value.handler


@pytest.mark.asyncio
async def test_returned_exception_becomes_handler_error():
    async def handler(event):
        return ValueError("bad input")

    with pytest.raises(HandlerError, match="bad input"):
        await invoke(handler, EVENT)


@pytest.mark.asyncio
async def test_cancellation_is_not_wrapped():
    async def handler(event):
        raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await invoke(handler, EVENT)


def test_registry_accepts_objects_with_handle():
    class Counter:
        def __init__(self):
            self.count = 0

        def handle(self, event):
            self.count += 1

    counter = Counter()
    registry = HandlerRegistry()
    registry.register(counter, print)

    funcs = list(registry)
    assert len(registry) == 2
    assert funcs[0] == counter.handle
    assert funcs[1] is print


def test_registry_rejects_non_callables():
    with pytest.raises(TypeError):
        HandlerRegistry().register(42)


def test_frozen_registry_rejects_registration():
    registry = HandlerRegistry()
    registry.freeze()
    assert registry.frozen
    with pytest.raises(RuntimeError):
        registry.register(print)
