from methodstats.common.models import MethodAction, MetricConfig, Outcome
from methodstats.common.naming import TagConfigurationError, name, sanitize
from methodstats.intercept import (
    CallInterceptor,
    configure,
    get_default_interceptor,
    instrument,
    method_stats,
)
from methodstats.registry import BindingRegistry
from methodstats.tags import AddAsTag

__all__ = [
    "AddAsTag",
    "BindingRegistry",
    "CallInterceptor",
    "MethodAction",
    "MetricConfig",
    "Outcome",
    "TagConfigurationError",
    "configure",
    "get_default_interceptor",
    "instrument",
    "method_stats",
    "name",
    "sanitize",
]
