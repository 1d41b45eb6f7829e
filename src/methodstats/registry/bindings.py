from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from methodstats.common.models import CallSite, MethodAction, MetricConfig

BindingKey = Union[str, Callable[..., Any]]


def call_site_key(target: BindingKey) -> str:
    if isinstance(target, str):
        return target
    return CallSite.from_callable(target).key


def _flat_tags(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    return ",".join(str(token) for token in raw)


def config_from_mapping(raw: Mapping[str, Any]) -> MetricConfig:
    return MetricConfig(
        method_name=str(raw.get("method_name") or ""),
        additional_tags=_flat_tags(raw.get("additional_tags")),
        action=MethodAction.parse(raw.get("action")),
        capture_count=bool(raw.get("capture_count", True)),
        capture_response_time=bool(raw.get("capture_response_time", True)),
    )


@dataclass
class BindingRegistry:
    """Call-site key (``module:qualname``) to :class:`MetricConfig`.

    Populated once during setup; lookups afterwards are read-only.
    """

    _bindings: Dict[str, MetricConfig] = field(default_factory=dict)

    def register(self, target: BindingKey, config: MetricConfig) -> MetricConfig:
        config.additional_tag_pairs()
        key = call_site_key(target)
        self._bindings[key] = config
        return config

    def get(
        self, target: BindingKey, default: Optional[MetricConfig] = None
    ) -> Optional[MetricConfig]:
        return self._bindings.get(call_site_key(target), default)

    def keys(self) -> List[str]:
        return sorted(self._bindings)

    def items(self) -> Iterator[tuple[str, MetricConfig]]:
        for key in self.keys():
            yield key, self._bindings[key]

    def __contains__(self, target: object) -> bool:
        if not isinstance(target, str) and not callable(target):
            return False
        return call_site_key(target) in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    @staticmethod
    def from_settings(raw: Mapping[str, Any]) -> "BindingRegistry":
        registry = BindingRegistry()
        bindings = raw.get("bindings") or {}
        for key, entry in bindings.items():
            registry.register(str(key), config_from_mapping(entry or {}))
        return registry
