"""
Process-local meter registry for counters, gauges and timers.

Gauges hold their last value strongly until the next reading replaces it, so a
one-shot latency reading stays visible to whoever samples the registry.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List

from methodstats.sinks.base import TimeUnit


@dataclass
class InMemoryCounter:
    name: str
    _lock: threading.Lock = field(repr=False)
    count: float = 0.0

    def increment(self, amount: float = 1.0) -> None:
        with self._lock:
            self.count += amount


@dataclass
class InMemoryTimer:
    name: str
    _lock: threading.Lock = field(repr=False)
    samples_ms: List[float] = field(default_factory=list)

    def record(self, amount: float, unit: TimeUnit = TimeUnit.MILLISECONDS) -> None:
        value_ms = unit.to_millis(amount)
        with self._lock:
            self.samples_ms.append(value_ms)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self.samples_ms)

    @property
    def total_ms(self) -> float:
        with self._lock:
            return sum(self.samples_ms)

    @property
    def max_ms(self) -> float:
        with self._lock:
            return max(self.samples_ms, default=0.0)


class InMemoryMeterRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, InMemoryCounter] = {}
        self._gauges: Dict[str, float] = {}
        self._timers: Dict[str, InMemoryTimer] = {}

    def counter(self, name: str) -> InMemoryCounter:
        with self._lock:
            existing = self._counters.get(name)
            if existing is None:
                existing = InMemoryCounter(name=name, _lock=self._lock)
                self._counters[name] = existing
            return existing

    def gauge(self, name: str, value: float) -> float:
        with self._lock:
            self._gauges[name] = float(value)
        return value

    def timer(self, name: str) -> InMemoryTimer:
        with self._lock:
            existing = self._timers.get(name)
            if existing is None:
                existing = InMemoryTimer(name=name, _lock=self._lock)
                self._timers[name] = existing
            return existing

    def counter_value(self, name: str) -> float:
        with self._lock:
            existing = self._counters.get(name)
            return existing.count if existing is not None else 0.0

    def gauge_value(self, name: str) -> float | None:
        with self._lock:
            return self._gauges.get(name)

    def timer_samples(self, name: str) -> List[float]:
        with self._lock:
            existing = self._timers.get(name)
            return list(existing.samples_ms) if existing is not None else []

    def names(self) -> List[str]:
        with self._lock:
            return sorted(set(self._counters) | set(self._gauges) | set(self._timers))

    def snapshot(self) -> dict:
        with self._lock:
            stats: dict = {}
            for key, counter in self._counters.items():
                stats[key] = counter.count
            for key, value in self._gauges.items():
                stats[key] = value
            for key, timer in self._timers.items():
                samples = timer.samples_ms
                if not samples:
                    continue
                ordered = sorted(samples)
                stats[key] = {
                    "count": len(samples),
                    "avg": sum(samples) / len(samples),
                    "p95": ordered[max(int(0.95 * len(ordered)) - 1, 0)],
                    "max": ordered[-1],
                }
            return stats

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._timers.clear()
