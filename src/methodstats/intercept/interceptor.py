from __future__ import annotations

import functools
import inspect
import time
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from methodstats.common.logging import get_logger
from methodstats.common.models import (
    METHODSTATS_COUNTER_NAME,
    METHODSTATS_GAUGE_NAME,
    METHODSTATS_TIMER_NAME,
    CallSite,
    Descriptor,
    MetricConfig,
    MetricIdentity,
    Outcome,
)
from methodstats.registry.bindings import BindingRegistry
from methodstats.sinks.base import MeterRegistry, TimeUnit
from methodstats.sinks.memory import InMemoryMeterRegistry
from methodstats.tags.descriptor import build_descriptor
from methodstats.tags.resolver import TagResolver, report_invalid_tags

logger = get_logger("interceptor")

Clock = Callable[[], float]


class CallInterceptor:
    """Observes calls and reports count and latency metrics to a sink.

    Per-call state lives on the stack of ``invoke``; one instance serves any
    number of concurrent callers. Failures raised by the wrapped call are
    re-raised untouched. Failures raised while recording metrics are logged
    and dropped.
    """

    def __init__(
        self,
        sink: MeterRegistry,
        resolver: Optional[TagResolver] = None,
        registry: Optional[BindingRegistry] = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.sink = sink
        self.resolver = resolver or TagResolver()
        self.registry = registry
        self._clock = clock

    def config_for(self, call_site: CallSite, fallback: MetricConfig) -> MetricConfig:
        if self.registry is None:
            return fallback
        return self.registry.get(call_site.key, fallback) or fallback

    def invoke(
        self,
        config: MetricConfig,
        call_site: CallSite,
        descriptor: Descriptor,
        func: Callable[..., Any],
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        kwargs = kwargs or {}
        start = self._clock()
        try:
            result = func(*args, **kwargs)
        except BaseException:
            self._on_error(config, call_site, descriptor, args, kwargs)
            raise
        self._on_success(config, call_site, descriptor, args, kwargs, start)
        return result

    async def invoke_async(
        self,
        config: MetricConfig,
        call_site: CallSite,
        descriptor: Descriptor,
        func: Callable[..., Awaitable[Any]],
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        kwargs = kwargs or {}
        start = self._clock()
        try:
            result = await func(*args, **kwargs)
        except BaseException:
            self._on_error(config, call_site, descriptor, args, kwargs)
            raise
        self._on_success(config, call_site, descriptor, args, kwargs, start)
        return result

    def wrap(
        self,
        func: Callable[..., Any],
        config: Optional[MetricConfig] = None,
        tag_params: Optional[Mapping[str, str]] = None,
    ) -> Callable[..., Any]:
        call_site = CallSite.from_callable(func)
        descriptor = build_descriptor(func, tag_params)
        bound = config if config is not None else self.config_for(call_site, MetricConfig())
        report_invalid_tags(bound, call_site)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await self.invoke_async(bound, call_site, descriptor, func, args, kwargs)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return self.invoke(bound, call_site, descriptor, func, args, kwargs)

        return wrapper

    def _on_success(
        self,
        config: MetricConfig,
        call_site: CallSite,
        descriptor: Descriptor,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
        start: float,
    ) -> None:
        elapsed_ms = (self._clock() - start) * 1000.0
        try:
            self._capture_response_time(config, call_site, descriptor, args, kwargs, elapsed_ms)
        except Exception:
            self._report_failure(call_site, "response_time")
        try:
            self._increment_count(config, call_site, descriptor, args, kwargs, Outcome.SUCCESS)
        except Exception:
            self._report_failure(call_site, "count")

    def _on_error(
        self,
        config: MetricConfig,
        call_site: CallSite,
        descriptor: Descriptor,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
    ) -> None:
        try:
            self._increment_count(config, call_site, descriptor, args, kwargs, Outcome.ERROR)
        except Exception:
            self._report_failure(call_site, "count")

    def _increment_count(
        self,
        config: MetricConfig,
        call_site: CallSite,
        descriptor: Descriptor,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
        outcome: Outcome,
    ) -> None:
        if not config.capture_count:
            return
        tags = self.resolver.resolve(config, call_site, descriptor, args, kwargs, outcome)
        counter = MetricIdentity(METHODSTATS_COUNTER_NAME, tags)
        self.sink.counter(counter.encode()).increment()

    def _capture_response_time(
        self,
        config: MetricConfig,
        call_site: CallSite,
        descriptor: Descriptor,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
        elapsed_ms: float,
    ) -> None:
        if not config.capture_response_time:
            return
        tags = self.resolver.resolve(config, call_site, descriptor, args, kwargs)

        gauge = MetricIdentity(METHODSTATS_GAUGE_NAME, tags)
        self.sink.gauge(gauge.encode(), elapsed_ms)

        timer = MetricIdentity(METHODSTATS_TIMER_NAME, tags)
        self.sink.timer(timer.encode()).record(elapsed_ms, TimeUnit.MILLISECONDS)

    @staticmethod
    def _report_failure(call_site: CallSite, stage: str) -> None:
        logger.error(
            "methodstats_capture_failed",
            exc_info=True,
            extra={"call_site": call_site.key, "stage": stage},
        )


def instrument(
    config: MetricConfig,
    descriptor: Descriptor,
    call: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Run ``call`` once through the default interceptor."""
    call_site = CallSite.from_callable(call)
    report_invalid_tags(config, call_site)
    return get_default_interceptor().invoke(config, call_site, descriptor, call, args, kwargs)


_default_interceptor = CallInterceptor(sink=InMemoryMeterRegistry())


def get_default_interceptor() -> CallInterceptor:
    return _default_interceptor


def configure(
    sink: Optional[MeterRegistry] = None,
    registry: Optional[BindingRegistry] = None,
    resolver: Optional[TagResolver] = None,
) -> CallInterceptor:
    """Replace the process-wide interceptor used by ``method_stats`` and ``instrument``.

    The default interceptor owns its sink: the one it replaces is closed when
    it has a ``close()`` method and is not reused by the new interceptor.
    """
    global _default_interceptor
    previous = _default_interceptor.sink
    _default_interceptor = CallInterceptor(
        sink=sink or InMemoryMeterRegistry(),
        resolver=resolver,
        registry=registry,
    )
    if previous is not _default_interceptor.sink:
        close = getattr(previous, "close", None)
        if callable(close):
            close()
    return _default_interceptor
