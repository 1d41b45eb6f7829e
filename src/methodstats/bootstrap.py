from __future__ import annotations

from methodstats.common.logging import setup_logging
from methodstats.common.settings import Settings
from methodstats.intercept.interceptor import CallInterceptor, configure
from methodstats.registry.bindings import BindingRegistry
from methodstats.sinks.base import MeterRegistry
from methodstats.sinks.jsonl import JsonLinesMeterRegistry
from methodstats.sinks.memory import InMemoryMeterRegistry


def build_sink(settings: Settings) -> MeterRegistry:
    metrics = settings.raw.get("metrics") or {}
    kind = str(metrics.get("sink", "memory"))
    if kind == "jsonl":
        if not settings.metrics_log_path:
            raise ValueError("metrics.log_path is required for the jsonl sink")
        return JsonLinesMeterRegistry(settings.metrics_log_path, echo=settings.metrics_echo)
    if kind == "memory":
        return InMemoryMeterRegistry()
    raise ValueError(f"Unknown metrics sink: {kind}")


def configure_from_settings(settings: Settings) -> CallInterceptor:
    """Install logging, bindings and the sink described by ``settings``."""
    logger = setup_logging(settings.app_log_path, settings.log_level)
    registry = BindingRegistry.from_settings(settings.raw)
    interceptor = configure(sink=build_sink(settings), registry=registry)
    logger.info(
        "methodstats_configured",
        extra={
            "environment": settings.environment,
            "bindings": len(registry),
            "sink": type(interceptor.sink).__name__,
        },
    )
    return interceptor
