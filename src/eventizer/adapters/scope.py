# src/eventizer/adapters/scope.py
"""Scoped access to a Dispatcher.

``provide`` hands a dispatcher down to everything running inside a ``with``
block (thread- and asyncio-task-local, via contextvars). Consumers fetch it
with ``use_dispatcher`` or tie a listener to their own lifetime with
``ScopedSubscription``.

    bus = Dispatcher()
    with provide(bus):
        with subscribed("counter:increment", on_increment):
            emitter("counter:increment")(5)
"""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence

from eventizer.core import log
from eventizer.core.contracts import EventName, Listener, Unsubscribe, event_name
from eventizer.core.dispatcher import Dispatcher

l = log.get("eventizer.scope")

_current: ContextVar[Optional[Dispatcher]] = ContextVar("eventizer_dispatcher", default=None)


class DispatcherNotProvidedError(RuntimeError):
    """Raised when a dispatcher is looked up outside any ``provide`` scope."""


@contextmanager
def provide(dispatcher: Dispatcher) -> Iterator[Dispatcher]:
    """Make ``dispatcher`` the current one for the enclosed block."""
    token = _current.set(dispatcher)
    try:
        yield dispatcher
    finally:
        _current.reset(token)


def use_dispatcher() -> Dispatcher:
    d = _current.get()
    if d is None:
        raise DispatcherNotProvidedError("use_dispatcher() must be called within provide(dispatcher)")
    return d


def _resolve(dispatcher: Optional[Dispatcher]) -> Dispatcher:
    return dispatcher if dispatcher is not None else use_dispatcher()


class ScopedSubscription:
    """A listener bound to an owner's active/inactive lifecycle.

    ``activate`` subscribes, ``deactivate`` calls the unsubscribe handle
    exactly once. While active, ``update`` re-subscribes when the event name
    or the dependency tuple changes. The dispatcher is resolved once, at
    construction.
    """

    def __init__(self, event: EventName, listener: Listener, deps: Sequence[Any] = (),
                 dispatcher: Optional[Dispatcher] = None):
        self.dispatcher = _resolve(dispatcher)
        self.event = event
        self.listener = listener
        self.deps = tuple(deps)
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def activate(self) -> "ScopedSubscription":
        if self._unsubscribe is None:
            self._unsubscribe = self.dispatcher.on(self.event, self.listener)
        return self

    def deactivate(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def update(self, event: Optional[EventName] = None, listener: Optional[Listener] = None,
               deps: Optional[Sequence[Any]] = None) -> bool:
        """Apply new inputs; returns True when a re-subscription happened.

        A new listener alone is picked up on the next re-subscription, the
        same way a changed callback only takes effect when its deps change.
        """
        changed = False
        if event is not None and event_name(event) != event_name(self.event):
            self.event = event
            changed = True
        if deps is not None and tuple(deps) != self.deps:
            self.deps = tuple(deps)
            changed = True
        if listener is not None:
            self.listener = listener
        if changed and self.active:
            l.debug("resubscribe event=%s deps=%r", self.event, self.deps)
            self.deactivate()
            self.activate()
        return changed and self.active

    def __enter__(self) -> "ScopedSubscription":
        return self.activate()

    def __exit__(self, exc_type, exc, tb):
        self.deactivate()
        return False


@contextmanager
def subscribed(event: EventName, listener: Listener,
               dispatcher: Optional[Dispatcher] = None) -> Iterator[ScopedSubscription]:
    sub = ScopedSubscription(event, listener, dispatcher=dispatcher)
    with sub:
        yield sub


@dataclass(frozen=True)
class Emitter:
    """Emit-only handle for one event. Equal handles for the same bus and event."""
    dispatcher: Dispatcher
    event: EventName

    def __call__(self, payload: Any = None) -> None:
        self.dispatcher.emit(self.event, payload)


def emitter(event: EventName, dispatcher: Optional[Dispatcher] = None) -> Emitter:
    return Emitter(_resolve(dispatcher), event)
