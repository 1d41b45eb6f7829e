from __future__ import annotations

import json
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from methodstats.sinks.base import TimeUnit


@dataclass
class _JsonLinesCounter:
    registry: "JsonLinesMeterRegistry"
    name: str

    def increment(self, amount: float = 1.0) -> None:
        self.registry.emit("counter", self.name, amount)


@dataclass
class _JsonLinesTimer:
    registry: "JsonLinesMeterRegistry"
    name: str

    def record(self, amount: float, unit: TimeUnit = TimeUnit.MILLISECONDS) -> None:
        self.registry.emit("timer", self.name, unit.to_millis(amount))


@dataclass
class JsonLinesMeterRegistry:
    metrics_log_path: str
    echo: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        path = Path(self.metrics_log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._file = path.open("a", encoding="utf-8")

    def counter(self, name: str) -> _JsonLinesCounter:
        return _JsonLinesCounter(registry=self, name=name)

    def gauge(self, name: str, value: float) -> float:
        self.emit("gauge", name, value)
        return value

    def timer(self, name: str) -> _JsonLinesTimer:
        return _JsonLinesTimer(registry=self, name=name)

    def emit(self, kind: str, name: str, value: float) -> None:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "kind": kind,
            "name": name,
            "value": value,
        }
        line = f"[METRICS] {json.dumps(payload, ensure_ascii=True)}"
        with self._lock:
            if self.echo:
                print(line, file=sys.stdout)
            self._file.write(line + "\n")
            self._file.flush()

    def close(self) -> None:
        with self._lock:
            self._file.close()
