from methodstats.sinks.base import Counter, MeterRegistry, TimeUnit, Timer
from methodstats.sinks.jsonl import JsonLinesMeterRegistry
from methodstats.sinks.memory import InMemoryMeterRegistry

__all__ = [
    "Counter",
    "InMemoryMeterRegistry",
    "JsonLinesMeterRegistry",
    "MeterRegistry",
    "TimeUnit",
    "Timer",
]
