import asyncio
import json
import logging
from typing import Any, Callable

import pytest

from streamdeck_runtime.config import Info, PluginConfig
from streamdeck_runtime.errors import TransportClosed
from streamdeck_runtime.streamdeck import StreamDeck


class FakeTransport:
    """In-memory stand-in for :class:`streamdeck_runtime.transport.Transport`."""

    def __init__(self, messages=()):
        self.incoming: asyncio.Queue = asyncio.Queue()
        for message in messages:
            self.feed(message)
        self.sent: list[str] = []
        self.closed = False
        self.recv_calls = 0
        self.fail_send: BaseException | None = None

    def feed(self, message: Any) -> None:
        if isinstance(message, dict):
            message = json.dumps(message)
        self.incoming.put_nowait(message)

    def close_from_host(self, code: int = 1001, reason: str = "") -> None:
        self.incoming.put_nowait(TransportClosed(code, reason))

    async def recv(self):
        self.recv_calls += 1
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, message):
        if self.fail_send is not None:
            raise self.fail_send
        if self.closed:
            raise TransportClosed(1000, "closed")
        self.sent.append(message)

    async def close(self):
        if not self.closed:
            self.closed = True
            self.incoming.put_nowait(TransportClosed(1000, "closed by client"))

    def sent_json(self) -> list[dict]:
        return [json.loads(m) for m in self.sent]


def make_config(**overrides) -> PluginConfig:
    values = dict(
        port=28196,
        plugin_uuid="plugin-uuid",
        register_event="registerPlugin",
        info=Info(),
    )
    values.update(overrides)
    return PluginConfig(**values)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def deck(config, transport):
    return StreamDeck(config, transport)


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in original_handlers:
            root.removeHandler(handler)
            try:
                handler.close()
            except Exception:
                pass
    for handler in original_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(original_level)
