# tests/conftest.py
import itertools
import logging
import os

import pytest

from eventizer.core import log
from eventizer.core.dispatcher import Dispatcher
from eventizer.core.metrics import start_exporter, stop_exporter

_ids = itertools.count()


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging_and_metrics():
    # Setup logging (reads LOG_LEVEL / LOG_JSON / .env if available)
    log.setup()

    # Start metrics exporter with short interval during tests
    interval = float(os.getenv("METRICS_INTERVAL_TEST", "1.0"))
    json_mode = (os.getenv("LOG_JSON", "0") == "1")
    start_exporter(interval_sec=interval, json_mode=json_mode,
                   logger=logging.getLogger("metrics"))
    yield
    stop_exporter()


@pytest.fixture
def bus():
    # unique name keeps metric labels apart between tests
    return Dispatcher(f"test.bus.{next(_ids)}")


class Recorder:
    """Listener that remembers every payload it was called with."""

    def __init__(self, name="rec", log_to=None):
        self.name = name
        self.calls = []
        self.log_to = log_to

    def __call__(self, payload):
        self.calls.append(payload)
        if self.log_to is not None:
            self.log_to.append(self.name)


@pytest.fixture
def recorder():
    return Recorder
