from methodstats.intercept.decorators import method_stats
from methodstats.intercept.interceptor import (
    CallInterceptor,
    configure,
    get_default_interceptor,
    instrument,
)

__all__ = [
    "CallInterceptor",
    "configure",
    "get_default_interceptor",
    "instrument",
    "method_stats",
]
