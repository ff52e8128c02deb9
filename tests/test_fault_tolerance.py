import logging

import pytest

from eventizer.core import metrics


def test_failing_listener_does_not_block_others(bus, recorder, caplog):
    caplog.set_level(logging.ERROR, logger=bus.name)

    def boom(payload):
        raise RuntimeError("Test error")

    normal = recorder()
    bus.on("test:event", boom)
    bus.on("test:event", normal)

    bus.emit("test:event", "hello")

    assert normal.calls == ["hello"]
    errors = [r for r in caplog.records if r.name == bus.name and r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "test:event" in errors[0].getMessage()
    assert "boom" in errors[0].getMessage()
    assert errors[0].exc_info is not None


def test_failing_listener_stays_registered(bus, recorder):
    calls = []

    def flaky(payload):
        calls.append(payload)
        raise ValueError(payload)

    after = recorder()
    bus.on("x", flaky)
    bus.on("x", after)

    bus.emit("x", 1)
    bus.emit("x", 2)

    assert calls == [1, 2]
    assert after.calls == [1, 2]
    assert bus.subscriber_count("x") == 2


def test_every_listener_failing_still_returns(bus):
    def bad(payload):
        raise KeyError(payload)

    for _ in range(3):
        bus.on("x", bad)
    assert bus.emit("x", "k") is None
    assert metrics.value("dispatch_listener_errors_total", bus=bus.name, event="x") == 3


def test_base_exceptions_are_not_swallowed(bus, recorder):
    def interrupt(payload):
        raise KeyboardInterrupt

    bus.on("x", interrupt)
    with pytest.raises(KeyboardInterrupt):
        bus.emit("x", None)
