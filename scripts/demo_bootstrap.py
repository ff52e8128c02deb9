import os
import random
import time
from pathlib import Path

from eventizer.core import log
from eventizer.core.config import build_from_yaml
from eventizer.core.metrics import force_emit, start_exporter, stop_exporter

CONFIG = Path(__file__).with_name("dispatcher.yaml")


def main():
    bus, unsubscribes = build_from_yaml(os.getenv("EVENTIZER_CONFIG", str(CONFIG)))
    start_exporter(interval_sec=float(os.getenv("METRICS_INTERVAL", "5")),
                   json_mode=(os.getenv("LOG_JSON", "0") == "1"))

    for i in range(10):
        bus.emit("job:progress", {"i": i, "pct": random.uniform(0, 100)})
        if i % 4 == 3:
            bus.emit("job:failed", {"i": i})
        time.sleep(0.2)
    bus.emit("job:done")

    for unsubscribe in unsubscribes:
        unsubscribe()
    stop_exporter()
    force_emit(log.get("metrics"))


if __name__ == "__main__":
    main()
