"""Handler registration and invocation."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Iterator, List, Protocol, Union, runtime_checkable

from .errors import HandlerError
from .events import InboundEvent

HandlerFunc = Callable[[InboundEvent], Union[Awaitable[Any], Any]]


@runtime_checkable
class Handler(Protocol):
    """Object form of a handler; ``handle`` may be sync or ``async``."""

    def handle(self, event: InboundEvent) -> Any:
        ...


def resolve_handler(handler: Union[Handler, HandlerFunc]) -> HandlerFunc:
    if isinstance(handler, Handler):
        return handler.handle
    if callable(handler):
        return handler
    raise TypeError(f"handler must be callable or define handle(), got {handler!r}")


def handler_name(func: Callable[..., Any]) -> str:
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    if name is None:
        return repr(func)
    module = getattr(func, "__module__", None)
    return f"{module}.{name}" if module else name


async def invoke(func: HandlerFunc, event: InboundEvent) -> None:
    """Run ``func`` for ``event`` and raise :class:`HandlerError` on failure.

    Coroutine functions run on the event loop; plain callables run in a
    worker thread so blocking work does not stall the loop. A handler fails
    by raising or by returning an ``Exception`` instance.
    """
    try:
        if inspect.iscoroutinefunction(func):
            result = await func(event)
        else:
            result = await asyncio.to_thread(func, event)
            if inspect.isawaitable(result):
                result = await result
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        raise HandlerError(handler_name(func), event, exc) from exc
    if isinstance(result, BaseException):
        raise HandlerError(handler_name(func), event, result)


class HandlerRegistry:
    """Ordered, append-only collection of handlers.

    The registry is frozen when the engine starts; the loops read it without
    locking, so registering afterwards is rejected.
    """

    def __init__(self) -> None:
        self._handlers: List[HandlerFunc] = []
        self._frozen = False

    def register(self, *handlers: Union[Handler, HandlerFunc]) -> None:
        if self._frozen:
            raise RuntimeError("handlers must be registered before the runtime starts")
        resolved = [resolve_handler(h) for h in handlers]
        self._handlers.extend(resolved)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __iter__(self) -> Iterator[HandlerFunc]:
        return iter(tuple(self._handlers))

    def __len__(self) -> int:
        return len(self._handlers)


__all__ = ["Handler", "HandlerFunc", "HandlerRegistry", "handler_name", "invoke", "resolve_handler"]
