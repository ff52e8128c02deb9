# src/eventizer/core/dispatcher.py
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Generic, List, Tuple, TypeVar, overload

from eventizer.core import log
from eventizer.core.contracts import EventKey, EventName, Listener, Unsubscribe, event_name
from eventizer.core.metrics import Timer, gauge_set, inc

EM = TypeVar("EM")
P = TypeVar("P")

_NO_PAYLOAD: Any = None


def _fn_name(fn: Any) -> str:
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)


class _Registration:
    """One entry in an event's listener list.

    Duplicate registrations of the same listener are separate entries, so
    an unsubscribe handle can remove exactly its own.
    """
    __slots__ = ("listener",)

    def __init__(self, listener: Listener):
        self.listener = listener


class Dispatcher(Generic[EM]):
    """Synchronous in-process publish/subscribe registry.

    ``EM`` is the event map: a TypedDict mapping event names to payload
    types. It only exists for the type checker.

    Emission iterates over a snapshot of the listener list taken when
    ``emit`` starts. Listeners added during a pass are not called in that
    pass; listeners removed during a pass still are.

    The subscriber mapping is guarded by a lock that is never held while a
    listener runs, so listeners may call back into the dispatcher from any
    thread.
    """

    def __init__(self, name: str = "eventizer.bus", *, metrics: bool = True):
        self.name = name
        self.metrics = metrics
        self.l = log.get(name)
        self._subs: Dict[str, List[_Registration]] = {}
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<Dispatcher name={self.name!r} events={len(self._subs)}>"

    # -------------------- registration --------------------
    @overload
    def on(self, event: EventKey[P], listener: Callable[[P], Any]) -> Unsubscribe: ...
    @overload
    def on(self, event: str, listener: Listener) -> Unsubscribe: ...

    def on(self, event, listener):
        """Append ``listener`` for ``event`` and return its unsubscribe handle."""
        key = event_name(event)
        reg = _Registration(listener)
        with self._lock:
            self._subs.setdefault(key, []).append(reg)
            self._count_changed(key)
        self.l.debug("subscribed event=%s fn=%s", key, _fn_name(listener))
        if self.metrics:
            inc("dispatch_subscribe_total", 1, bus=self.name, event=key)

        def unsubscribe() -> None:
            self._remove(key, lambda r: r is reg)

        return unsubscribe

    @overload
    def off(self, event: EventKey[P], listener: Callable[[P], Any]) -> None: ...
    @overload
    def off(self, event: str, listener: Listener) -> None: ...

    def off(self, event, listener):
        """Remove every registration of ``listener`` for ``event``."""
        self._remove(event_name(event), lambda r: r.listener == listener)

    def _remove(self, key: str, match: Callable[[_Registration], bool]) -> None:
        with self._lock:
            regs = self._subs.get(key)
            if not regs:
                return
            kept = [r for r in regs if not match(r)]
            removed = len(regs) - len(kept)
            if not removed:
                return
            if kept:
                self._subs[key] = kept
            else:
                del self._subs[key]
            self._count_changed(key)
        self.l.debug("unsubscribed event=%s removed=%d left=%d", key, removed, len(kept))
        if self.metrics:
            inc("dispatch_unsubscribe_total", removed, bus=self.name, event=key)

    def _count_changed(self, key: str) -> None:
        # caller holds self._lock so gauge updates land in mutation order
        if self.metrics:
            gauge_set("dispatch_subscribers", float(len(self._subs.get(key, ()))), bus=self.name, event=key)

    # -------------------- emission --------------------
    @overload
    def emit(self, event: EventKey[P], payload: P = ...) -> None: ...
    @overload
    def emit(self, event: str, payload: Any = ...) -> None: ...

    def emit(self, event, payload=_NO_PAYLOAD):
        """Call each listener of ``event`` with ``payload`` in registration order.

        A listener that raises is logged and skipped; the error never reaches
        the caller and later listeners still run.
        """
        key = event_name(event)
        with self._lock:
            regs: Tuple[_Registration, ...] = tuple(self._subs.get(key, ()))
        if self.metrics:
            inc("dispatch_emit_total", 1, bus=self.name, event=key)
        if not regs:
            return
        if not self.metrics:
            self._deliver(key, regs, payload)
            return
        with Timer("dispatch_emit_ms", bus=self.name, event=key):
            delivered = self._deliver(key, regs, payload)
        inc("dispatch_deliver_total", delivered, bus=self.name, event=key)

    def _deliver(self, key: str, regs: Tuple[_Registration, ...], payload: Any) -> int:
        delivered = 0
        for reg in regs:
            fn = reg.listener
            try:
                fn(payload)
                delivered += 1
            except Exception as e:
                self.l.error("listener error event=%s fn=%s err=%s", key, _fn_name(fn), e, exc_info=True)
                if self.metrics:
                    inc("dispatch_listener_errors_total", 1, bus=self.name, event=key)
        return delivered

    # -------------------- introspection --------------------
    def subscriber_count(self, event: EventName) -> int:
        with self._lock:
            return len(self._subs.get(event_name(event), ()))

    def event_names(self) -> Tuple[str, ...]:
        """Events that currently have at least one listener."""
        with self._lock:
            return tuple(self._subs)

    # -------------------- bulk clear --------------------
    def clear_event(self, event: EventName) -> None:
        key = event_name(event)
        with self._lock:
            regs = self._subs.pop(key, None)
            if regs is not None:
                self._count_changed(key)
        if regs is not None:
            self.l.debug("cleared event=%s removed=%d", key, len(regs))

    def clear_all(self) -> None:
        with self._lock:
            keys = list(self._subs)
            self._subs = {}
            for key in keys:
                self._count_changed(key)
        self.l.debug("cleared all events=%d", len(keys))
