from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, Mapping, Optional, TypeVar, Union, overload

from methodstats.common.models import CallSite, MethodAction, MetricConfig
from methodstats.intercept.interceptor import CallInterceptor, get_default_interceptor
from methodstats.tags.descriptor import build_descriptor
from methodstats.tags.resolver import report_invalid_tags

F = TypeVar("F", bound=Callable[..., Any])


@overload
def method_stats(func: F) -> F:
    ...


@overload
def method_stats(
    func: None = None,
    *,
    method_name: str = "",
    additional_tags: str = "",
    action: Union[MethodAction, str] = MethodAction.NONE,
    capture_count: bool = True,
    capture_response_time: bool = True,
    tag_params: Optional[Mapping[str, str]] = None,
    interceptor: Optional[CallInterceptor] = None,
) -> Callable[[F], F]:
    ...


def method_stats(
    func: Optional[F] = None,
    *,
    method_name: str = "",
    additional_tags: str = "",
    action: Union[MethodAction, str] = MethodAction.NONE,
    capture_count: bool = True,
    capture_response_time: bool = True,
    tag_params: Optional[Mapping[str, str]] = None,
    interceptor: Optional[CallInterceptor] = None,
) -> Any:
    """Record call count, outcome and latency for the decorated function.

    Works bare (``@method_stats``) or with arguments. The interceptor is looked
    up on every call, so functions decorated at import time report to whatever
    ``configure()`` installed later. A binding registered for the function's
    call site replaces the configuration given here.
    """
    config = MetricConfig(
        method_name=method_name,
        additional_tags=additional_tags,
        action=MethodAction.parse(action),
        capture_count=capture_count,
        capture_response_time=capture_response_time,
    )

    def decorator(target: F) -> F:
        call_site = CallSite.from_callable(target)
        descriptor = build_descriptor(target, tag_params)
        report_invalid_tags(config, call_site)

        def _active() -> CallInterceptor:
            return interceptor or get_default_interceptor()

        if inspect.iscoroutinefunction(target):

            @functools.wraps(target)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                active = _active()
                bound = active.config_for(call_site, config)
                return await active.invoke_async(
                    bound, call_site, descriptor, target, args, kwargs
                )

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(target)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            active = _active()
            bound = active.config_for(call_site, config)
            return active.invoke(bound, call_site, descriptor, target, args, kwargs)

        return wrapper  # type: ignore[return-value]

    if func is not None:
        return decorator(func)
    return decorator
