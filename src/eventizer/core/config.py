# src/eventizer/core/config.py
from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from eventizer.core import log
from eventizer.core.contracts import Unsubscribe, declared_events
from eventizer.core.dispatcher import Dispatcher

l = log.get("eventizer.config")


@dataclass
class SubscriberSpec:
    event: str
    module: str
    func: str


@dataclass
class DispatcherConfig:
    name: str = "eventizer.bus"
    metrics: bool = True
    log_level: Optional[str] = None
    log_json: Optional[bool] = None
    events: Optional[List[str]] = None
    subscribers: List[SubscriberSpec] = field(default_factory=list)


def _imp(module: str, attr: str):
    mod = importlib.import_module(module)
    fn = getattr(mod, attr)
    if not callable(fn):
        raise ValueError(f"{module}.{attr} is not callable")
    return fn


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    sec = data.get(key) or {}
    if not isinstance(sec, dict):
        raise ValueError(f"'{key}' must be a mapping")
    return sec


def parse_config(data: Any) -> DispatcherConfig:
    """Validate an already-loaded YAML document."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("config root must be a mapping")

    bus_cfg = _section(data, "dispatcher")
    log_cfg = _section(data, "log")

    events = data.get("events")
    if events is not None:
        if not isinstance(events, list):
            raise ValueError("'events' must be a list of event names")
        events = [str(e) for e in events]

    subs: List[SubscriberSpec] = []
    for i, s in enumerate(data.get("subscribers") or []):
        if not isinstance(s, dict):
            raise ValueError(f"subscribers[{i}] must be a mapping")
        missing = [k for k in ("event", "module", "func") if not s.get(k)]
        if missing:
            raise ValueError(f"subscribers[{i}] missing {', '.join(missing)}")
        if events is not None and str(s["event"]) not in events:
            raise ValueError(f"subscribers[{i}] uses undeclared event {s['event']!r}")
        subs.append(SubscriberSpec(event=str(s["event"]), module=str(s["module"]), func=str(s["func"])))

    json_flag = log_cfg.get("json")
    return DispatcherConfig(
        name=str(bus_cfg.get("name", "eventizer.bus")),
        metrics=bool(bus_cfg.get("metrics", True)),
        log_level=log_cfg.get("level"),
        log_json=None if json_flag is None else bool(json_flag),
        events=events,
        subscribers=subs,
    )


def load_config(yaml_path: str | Path) -> DispatcherConfig:
    data = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8"))
    return parse_config(data)


def build_from_yaml(yaml_path: str | Path, event_map: Optional[type] = None) -> Tuple[Dispatcher, List[Unsubscribe]]:
    """Read a dispatcher YAML and return a wired dispatcher plus unsubscribe handles."""
    cfg = load_config(yaml_path)
    # an explicit log.json swaps the handler even if logging is already set up
    log.setup(cfg.log_level, cfg.log_json, force=cfg.log_json is not None)

    if event_map is not None:
        allowed = declared_events(event_map)
        for s in cfg.subscribers:
            if s.event not in allowed:
                raise ValueError(f"event {s.event!r} is not declared by {event_map.__name__}")

    bus: Dispatcher = Dispatcher(cfg.name, metrics=cfg.metrics)
    unsubscribes: List[Unsubscribe] = []
    for s in cfg.subscribers:
        unsubscribes.append(bus.on(s.event, _imp(s.module, s.func)))
        l.info("wired event=%s handler=%s:%s", s.event, s.module, s.func)
    return bus, unsubscribes
