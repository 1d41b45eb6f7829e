from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from methodstats.common.naming import TagConfigurationError, name, parse_flat_tags


METHODSTATS_COUNTER_NAME = "methodstats_count"
METHODSTATS_GAUGE_NAME = "methodstats_gauge"
METHODSTATS_TIMER_NAME = "methodstats_timer"

TAG_METHOD_NAME = "method.name"
TAG_METHOD_ACTION = "method.action"
TAG_METHOD_OUTCOME = "method.outcome"

TagSet = Dict[str, str]


class MethodAction(Enum):
    NONE = "NONE"
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LIST = "LIST"
    SEARCH = "SEARCH"
    EXECUTE = "EXECUTE"

    def __str__(self) -> str:
        return self.name

    @staticmethod
    def parse(raw: "MethodAction | str | None") -> "MethodAction":
        if raw is None or raw == "":
            return MethodAction.NONE
        if isinstance(raw, MethodAction):
            return raw
        try:
            return MethodAction[str(raw).strip().upper()]
        except KeyError as exc:
            raise ValueError(f"Unknown method action: {raw}") from exc


class Outcome(Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class MetricConfig:
    method_name: str = ""
    additional_tags: str = ""
    action: MethodAction = MethodAction.NONE
    capture_count: bool = True
    capture_response_time: bool = True
    _tag_pairs: Tuple[Tuple[str, str], ...] = field(
        default=(), init=False, repr=False, compare=False
    )
    _tag_error: Optional[str] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            pairs = parse_flat_tags(self.additional_tags)
        except TagConfigurationError as exc:
            object.__setattr__(self, "_tag_error", str(exc))
        else:
            object.__setattr__(self, "_tag_pairs", pairs)

    @property
    def tag_pairs(self) -> Tuple[Tuple[str, str], ...]:
        """Configured tags, empty when the flat list is malformed."""
        return self._tag_pairs

    @property
    def tag_error(self) -> Optional[str]:
        return self._tag_error

    def additional_tag_pairs(self) -> Tuple[Tuple[str, str], ...]:
        if self._tag_error is not None:
            raise TagConfigurationError(self._tag_error)
        return self._tag_pairs


@dataclass(frozen=True)
class CallSite:
    declaring_type: str
    method_name: str
    key: str
    module: str = ""

    @staticmethod
    def from_callable(func: Callable[..., Any]) -> "CallSite":
        func = inspect.unwrap(func)
        while isinstance(func, functools.partial):
            func = inspect.unwrap(func.func)
        qualname = getattr(func, "__qualname__", None)
        if qualname is None:
            # callable instance
            owner = type(func)
            module = owner.__module__ or "__main__"
            return CallSite.from_parts(module, f"{owner.__qualname__}.__call__")
        module = getattr(func, "__module__", None) or "__main__"
        return CallSite.from_parts(module, qualname)

    @staticmethod
    def from_key(key: str) -> "CallSite":
        module, sep, qualname = key.partition(":")
        if not sep or not module or not qualname:
            raise ValueError(f"Invalid call site key: {key}")
        return CallSite.from_parts(module, qualname)

    @staticmethod
    def from_parts(module: str, qualname: str) -> "CallSite":
        parts = qualname.split(".")
        method_name = parts[-1]
        if len(parts) > 1 and parts[-2] != "<locals>":
            declaring_type = parts[-2]
        else:
            declaring_type = module
        return CallSite(
            declaring_type=declaring_type,
            method_name=method_name,
            key=f"{module}:{qualname}",
            module=module,
        )

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_type}.{self.method_name}"

    @property
    def module_qualified_name(self) -> str:
        if not self.module or self.declaring_type == self.module:
            return self.qualified_name
        return f"{self.module}.{self.qualified_name}"


@dataclass(frozen=True)
class ParameterTag:
    index: int
    parameter: str
    tag_name: str
    default: Any = inspect.Parameter.empty
    keyword_only: bool = False


Descriptor = Tuple[ParameterTag, ...]


@dataclass(frozen=True)
class CapturedArgument:
    tag_name: str
    value: str


@dataclass
class MetricIdentity:
    base_name: str
    tags: TagSet = field(default_factory=dict)

    def encode(self) -> str:
        return name(self.base_name).with_tags(self.tags).build()
