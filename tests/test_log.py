import io
import json
import logging

from eventizer.core import log


def _record(msg="hello %s", args=("world",), exc_info=None):
    return logging.LogRecord("eventizer.test", logging.ERROR, __file__, 10, msg, args, exc_info, func="fn")


def test_json_handler_writes_one_object_per_line():
    buf = io.StringIO()
    h = log.JsonHandler(stream=buf)
    h.emit(_record())
    h.emit(_record("second", ()))

    lines = buf.getvalue().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["msg"] == "hello world"
    assert first["lvl"] == "ERROR"
    assert first["name"] == "eventizer.test"
    assert first["funcName"] == "fn"
    assert "exc" not in first


def test_json_handler_includes_exception():
    buf = io.StringIO()
    try:
        raise RuntimeError("listener blew up")
    except RuntimeError:
        import sys
        rec = _record("failed", (), sys.exc_info())
    log.JsonHandler(stream=buf).emit(rec)
    obj = json.loads(buf.getvalue())
    assert "RuntimeError: listener blew up" in obj["exc"]


def test_setup_is_idempotent_and_level_adjustable():
    root = logging.getLogger()
    before = [h for h in root.handlers if getattr(h, "_eventizer", False)]
    log.setup("DEBUG")
    after = [h for h in root.handlers if getattr(h, "_eventizer", False)]
    assert len(after) == len(before) == 1
    assert root.level == logging.DEBUG

    log.set_level("not-a-level")
    assert root.level == logging.INFO


def test_forced_setup_replaces_handler(monkeypatch):
    root = logging.getLogger()
    old_level = root.level
    monkeypatch.setenv("LOG_JSON", "1")
    try:
        log.setup("WARNING", force=True)
        ours = [h for h in root.handlers if getattr(h, "_eventizer", False)]
        assert len(ours) == 1
        assert isinstance(ours[0], log.JsonHandler)
    finally:
        log.setup(logging.getLevelName(old_level), json_mode=False, force=True)
    ours = [h for h in root.handlers if getattr(h, "_eventizer", False)]
    assert not isinstance(ours[0], log.JsonHandler)
