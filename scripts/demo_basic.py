"""Counter + message list wired through one dispatcher.

Run: python -m scripts.demo_basic
"""
from __future__ import annotations

from typing import List, TypedDict

from eventizer.adapters.scope import ScopedSubscription, emitter, provide
from eventizer.core import log
from eventizer.core.contracts import EventKey
from eventizer.core.dispatcher import Dispatcher


class Message(TypedDict):
    text: str
    sender: str


class AppEvents(TypedDict):
    counter_increment: int
    counter_reset: None
    message_send: Message


COUNTER_INCREMENT = EventKey[int]("counter:increment")
COUNTER_RESET = EventKey[None]("counter:reset")
MESSAGE_SEND = EventKey[Message]("message:send")


class Counter:
    def __init__(self):
        self.count = 0
        self._subs = [
            ScopedSubscription(COUNTER_INCREMENT, self.on_increment),
            ScopedSubscription(COUNTER_RESET, self.on_reset),
        ]

    def on_increment(self, by: int) -> None:
        self.count += by

    def on_reset(self, _: None) -> None:
        self.count = 0

    def mount(self):
        for s in self._subs:
            s.activate()

    def unmount(self):
        for s in self._subs:
            s.deactivate()


class MessageList:
    def __init__(self):
        self.messages: List[Message] = []
        self.sub = ScopedSubscription(MESSAGE_SEND, self.messages.append)


class Controls:
    def __init__(self):
        self.increment = emitter(COUNTER_INCREMENT)
        self.reset = emitter(COUNTER_RESET)
        self._send = emitter(MESSAGE_SEND)

    def send_message(self, text: str) -> None:
        if text.strip():
            self._send({"text": text, "sender": "User"})


def main():
    log.setup()
    lg = log.get("demo.basic")

    bus: Dispatcher[AppEvents] = Dispatcher("demo.bus")
    with provide(bus):
        counter, messages, controls = Counter(), MessageList(), Controls()
        counter.mount()
        with messages.sub:
            controls.increment(1)
            controls.increment(5)
            lg.info("counter=%d", counter.count)
            controls.reset()
            lg.info("counter after reset=%d", counter.count)

            controls.send_message("hello")
            controls.send_message("   ")
            controls.send_message("bye")
            for m in messages.messages:
                lg.info("%s: %s", m["sender"], m["text"])
        counter.unmount()

    lg.info("listeners left=%d", sum(bus.subscriber_count(e) for e in (COUNTER_INCREMENT, COUNTER_RESET, MESSAGE_SEND)))


if __name__ == "__main__":
    main()
