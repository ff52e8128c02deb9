from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from statistics import mean
from typing import Any, Deque, Dict, Iterable, Optional, Tuple, Type, TypeVar

# ---------------- Utilities ----------------

LabelKey = Tuple[Tuple[str, str], ...]  # sorted tuple of (k,v)


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(sorted_vals: Iterable[float], q: float) -> float:
    vals = list(sorted_vals)
    if not vals:
        return 0.0
    idx = max(0, min(len(vals) - 1, int(round((len(vals) - 1) * q))))
    return vals[idx]


# ---------------- Metric types ----------------

@dataclass
class _Base:
    name: str
    labels: LabelKey

    def __post_init__(self) -> None:
        self._lock = threading.Lock()


class Counter(_Base):
    _value: float = 0.0

    def inc(self, n: float = 1.0) -> None:
        with self._lock:
            self._value += n

    def value(self) -> float:
        return self._value


class Gauge(Counter):
    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)


class Histogram(_Base):
    maxlen = 2048

    def __post_init__(self) -> None:
        super().__post_init__()
        self._values: Deque[float] = deque(maxlen=self.maxlen)

    def observe(self, v: float) -> None:
        with self._lock:
            self._values.append(float(v))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            vals = sorted(self._values)
        if not vals:
            return dict.fromkeys(("count", "min", "max", "mean", "p50", "p90", "p99"), 0.0)
        return {
            "count": float(len(vals)),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p90": _pct(vals, 0.90),
            "p99": _pct(vals, 0.99),
        }


# ---------------- Registry ----------------

_Key = Tuple[str, LabelKey]
M = TypeVar("M", bound=_Base)


class Registry:
    """Metrics keyed by (name, labels); one table per metric type."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: Dict[type, Dict[_Key, _Base]] = {Counter: {}, Gauge: {}, Histogram: {}}

    def _get(self, kind: Type[M], name: str, labels: Dict[str, Any] | None) -> M:
        key = (name, _labels_key(labels))
        with self._lock:
            table = self._tables[kind]
            m = table.get(key)
            if m is None:
                m = table[key] = kind(name, key[1])
            return m  # type: ignore[return-value]

    def counter(self, name: str, labels: Dict[str, Any] | None) -> Counter:
        return self._get(Counter, name, labels)

    def gauge(self, name: str, labels: Dict[str, Any] | None) -> Gauge:
        return self._get(Gauge, name, labels)

    def hist(self, name: str, labels: Dict[str, Any] | None) -> Histogram:
        return self._get(Histogram, name, labels)

    def find(self, name: str, labels: Dict[str, Any] | None) -> Optional[_Base]:
        key = (name, _labels_key(labels))
        with self._lock:
            for table in self._tables.values():
                if key in table:
                    return table[key]
        return None

    def clear(self) -> None:
        with self._lock:
            for table in self._tables.values():
                table.clear()

    def snapshot(self) -> dict:
        with self._lock:
            tables = {kind: list(t.values()) for kind, t in self._tables.items()}
        return {
            "counters": [{"name": m.name, "labels": dict(m.labels), "value": m.value()} for m in tables[Counter]],
            "gauges": [{"name": m.name, "labels": dict(m.labels), "value": m.value()} for m in tables[Gauge]],
            "hists": [{"name": m.name, "labels": dict(m.labels), **m.snapshot()} for m in tables[Histogram]],
        }


REGISTRY = Registry()

# ---------------- Public API ----------------

def inc(name: str, n: float = 1.0, **labels: Any) -> None:
    REGISTRY.counter(name, labels).inc(n)


def gauge_set(name: str, v: float, **labels: Any) -> None:
    REGISTRY.gauge(name, labels).set(v)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    REGISTRY.hist(name, labels).observe(v)


def value(name: str, **labels: Any) -> float:
    """Current value of a counter or gauge, 0.0 if never recorded."""
    m = REGISTRY.find(name, labels)
    if isinstance(m, Counter):
        return m.value()
    return 0.0


def snapshot() -> dict:
    """Return a snapshot of current metrics (for tests)."""
    return REGISTRY.snapshot()


def reset() -> None:
    """Drop every recorded metric."""
    REGISTRY.clear()


# ---------------- Exporter (log every N seconds) ----------------

class _Exporter(threading.Thread):
    def __init__(self, interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None):
        super().__init__(name="metrics-exporter", daemon=True)
        self.interval = float(interval_sec)
        self.json_mode = bool(json_mode)
        self.log = logger or logging.getLogger("metrics")
        self._stop_evt = threading.Event()

    def run(self) -> None:
        while not self._stop_evt.is_set():
            t0 = time.time()
            self.emit_snapshot()
            to_sleep = max(0.5, self.interval - (time.time() - t0))
            self._stop_evt.wait(to_sleep)

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_evt.set()
        self.join(timeout=timeout)

    def emit_snapshot(self) -> None:
        snap = REGISTRY.snapshot()
        if self.json_mode:
            for kind, key in (("counter", "counters"), ("gauge", "gauges"), ("hist", "hists")):
                for m in snap[key]:
                    self.log.info({"type": kind, **m})
            return
        for m in snap["counters"]:
            self.log.info(f"[ctr] {m['name']} {m['labels']} value={m['value']:.0f}")
        for m in snap["gauges"]:
            self.log.info(f"[gauge] {m['name']} {m['labels']} value={m['value']:.3f}")
        for m in snap["hists"]:
            self.log.info(
                f"[hist] {m['name']} {m['labels']} "
                f"n={int(m['count'])} min={m['min']:.3f} p50={m['p50']:.3f} "
                f"p90={m['p90']:.3f} p99={m['p99']:.3f} "
                f"max={m['max']:.3f} mean={m['mean']:.3f}"
            )


_EXPORTER: Optional[_Exporter] = None


def start_exporter(interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        return
    _EXPORTER = _Exporter(interval_sec=interval_sec, json_mode=json_mode, logger=logger)
    _EXPORTER.start()


def stop_exporter(timeout: float = 1.0) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        _EXPORTER.stop(timeout=timeout)
        _EXPORTER = None


def force_emit(logger: Optional[logging.Logger] = None, json_mode: bool = False) -> None:
    """Emit a metrics snapshot now (useful for tests without sleeping)."""
    _Exporter(interval_sec=0, json_mode=json_mode, logger=logger).emit_snapshot()


# ---------------- Timer Helper ----------------

class Timer:
    """Context manager for measuring latency and reporting into a histogram."""
    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        dt_ms = (time.perf_counter() - self._t0) * 1000.0
        observe_hist(self.hist_name, dt_ms, **self.labels)
        return False
