from __future__ import annotations

import functools
import inspect
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from methodstats.common.logging import get_logger
from methodstats.common.models import Descriptor, ParameterTag

logger = get_logger("descriptor")

_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


@dataclass(frozen=True)
class AddAsTag:
    """Marks a parameter whose runtime value becomes a metric tag.

    Used as ``Annotated[int, AddAsTag("order.id")]``.
    """

    tag_name: str


def _hint_source(func: Callable[..., Any]) -> Callable[..., Any]:
    while isinstance(func, functools.partial):
        func = func.func
    if inspect.isfunction(func) or inspect.ismethod(func):
        return func
    return getattr(type(func), "__call__", func)


def _annotated_tags(func: Callable[..., Any]) -> Dict[str, str]:
    func = _hint_source(func)
    try:
        hints = typing.get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as exc:
        logger.debug(
            "descriptor_type_hints_unresolved",
            extra={"function": getattr(func, "__qualname__", repr(func)), "error": str(exc)},
        )
        hints = {
            key: value
            for key, value in getattr(func, "__annotations__", {}).items()
            if not isinstance(value, str)
        }
    tags: Dict[str, str] = {}
    for parameter, hint in hints.items():
        for marker in getattr(hint, "__metadata__", ()):
            if isinstance(marker, AddAsTag):
                tags[parameter] = marker.tag_name
    return tags


def _descriptor(
    func: Callable[..., Any], tag_items: Tuple[Tuple[str, str], ...]
) -> Descriptor:
    signature = inspect.signature(func)
    parameters = list(signature.parameters.values())
    known = {parameter.name: parameter for parameter in parameters}

    explicit = dict(tag_items)
    for parameter_name in explicit:
        parameter = known.get(parameter_name)
        if parameter is None:
            raise ValueError(
                f"Unknown parameter {parameter_name!r} for {func.__qualname__}"
            )
        if parameter.kind in _VARIADIC:
            raise ValueError(
                f"Variadic parameter {parameter_name!r} cannot be tagged"
            )

    tags = _annotated_tags(func)
    tags.update(explicit)

    entries = []
    for index, parameter in enumerate(parameters):
        tag_name = tags.get(parameter.name)
        if not tag_name or parameter.kind in _VARIADIC:
            continue
        entries.append(
            ParameterTag(
                index=index,
                parameter=parameter.name,
                tag_name=tag_name,
                default=parameter.default,
                keyword_only=parameter.kind is inspect.Parameter.KEYWORD_ONLY,
            )
        )
    return tuple(entries)


def build_descriptor(
    func: Callable[..., Any], tag_params: Optional[Mapping[str, str]] = None
) -> Descriptor:
    """Return the ``(index, tag)`` entries for every flagged parameter of ``func``.

    Computed once per call site by ``method_stats`` and ``CallInterceptor.wrap``,
    which keep the result for the lifetime of the wrapper.
    """
    tag_items = tuple(sorted((tag_params or {}).items()))
    return _descriptor(func, tag_items)
