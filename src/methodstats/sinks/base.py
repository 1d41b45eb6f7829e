from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable


class TimeUnit(Enum):
    NANOSECONDS = 1e-6
    MICROSECONDS = 1e-3
    MILLISECONDS = 1.0
    SECONDS = 1e3

    def to_millis(self, amount: float) -> float:
        return float(amount) * self.value


@runtime_checkable
class Counter(Protocol):
    def increment(self, amount: float = 1.0) -> None:
        ...


@runtime_checkable
class Timer(Protocol):
    def record(self, amount: float, unit: TimeUnit = TimeUnit.MILLISECONDS) -> None:
        ...


@runtime_checkable
class MeterRegistry(Protocol):
    """Metrics sink keyed by encoded metric name.

    Implementations must tolerate concurrent calls from many threads.
    """

    def counter(self, name: str) -> Counter:
        ...

    def gauge(self, name: str, value: float) -> float:
        ...

    def timer(self, name: str) -> Timer:
        ...
