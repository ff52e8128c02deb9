from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Generic, TypeVar, Union

__all__ = [
    "EventKey",
    "EventName",
    "Listener",
    "Unsubscribe",
    "event_name",
    "declared_events",
]


P = TypeVar("P")

# --------- Primitive / aliases ---------
Listener = Callable[[Any], Any]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class EventKey(Generic[P]):
    """Typed token for one event name.

    ``EventKey[int]("counter:increment")`` lets a type checker bind the
    listener parameter and the emitted payload to ``int``. At runtime it is
    just the name: a key and its plain string address the same listeners.
    """
    name: str

    def __str__(self) -> str:
        return self.name


EventName = Union[str, EventKey[Any]]


def event_name(event: EventName) -> str:
    """Reduce a str or EventKey to the storage key."""
    if isinstance(event, EventKey):
        return event.name
    return event


def declared_events(event_map: type) -> FrozenSet[str]:
    """Event names declared by an EventMap (a TypedDict subclass).

    Falls back to class annotations for plain classes used as a map.
    """
    if hasattr(event_map, "__required_keys__"):
        return frozenset(event_map.__required_keys__ | event_map.__optional_keys__)
    names = set()
    for klass in reversed(getattr(event_map, "__mro__", (event_map,))):
        names.update(getattr(klass, "__annotations__", {}).keys())
    return frozenset(names)
