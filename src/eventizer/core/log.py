from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

_configured = False

PLAIN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s | %(message)s"


class JsonHandler(logging.StreamHandler):
    """One JSON object per line on stdout."""
    def __init__(self, stream=None):
        super().__init__(stream=stream or sys.stdout)

    def format_record(self, record: logging.LogRecord) -> dict:
        obj = {
            "ts": record.created,
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        for k in ("filename", "lineno", "funcName"):
            obj[k] = getattr(record, k, None)
        if record.exc_info:
            obj["exc"] = logging.Formatter().formatException(record.exc_info)
        return obj

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.stream.write(json.dumps(self.format_record(record), ensure_ascii=False, default=str) + "\n")
            self.flush()
        except Exception:  # pragma: no cover
            self.handleError(record)


def _level(name: str) -> int:
    lvl = logging.getLevelName(name.upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def setup(level: Optional[str] = None, json_mode: Optional[bool] = None, *, force: bool = False) -> None:
    """Configure the root logger.

    - Loads ``.env`` and reads LOG_LEVEL, LOG_JSON when args are None
    - If already configured, only the level is updated unless force=True
    """
    global _configured
    if _configured and not force:
        if level is not None:
            set_level(level)
        return

    load_dotenv()

    py_level = _level(level or os.getenv("LOG_LEVEL", "INFO"))
    json_flag = json_mode if json_mode is not None else (os.getenv("LOG_JSON", "0") == "1")

    root = logging.getLogger()
    # pytest re-runs setup; drop our previous handlers only
    for h in list(root.handlers):
        if getattr(h, "_eventizer", False):
            root.removeHandler(h)
    root.setLevel(py_level)

    if json_flag:
        handler: logging.Handler = JsonHandler()
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=PLAIN_FORMAT))
    handler._eventizer = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    _configured = True


def get(name: str) -> logging.Logger:
    """Helper to get a namespaced logger."""
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Dynamically adjust root log level (e.g., during tests)."""
    logging.getLogger().setLevel(_level(level))
