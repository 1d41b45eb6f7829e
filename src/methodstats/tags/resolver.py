from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional, Sequence

from methodstats.common.logging import get_logger
from methodstats.common.models import (
    TAG_METHOD_ACTION,
    TAG_METHOD_NAME,
    TAG_METHOD_OUTCOME,
    CallSite,
    CapturedArgument,
    Descriptor,
    MethodAction,
    MetricConfig,
    Outcome,
    TagSet,
)

logger = get_logger("resolver")


def report_invalid_tags(config: MetricConfig, call_site: CallSite) -> bool:
    """Log a malformed ``additional_tags`` list once, when a call site is bound."""
    if config.tag_error is None:
        return False
    logger.error(
        "methodstats_additional_tags_invalid",
        extra={"call_site": call_site.key, "error": config.tag_error},
    )
    return True


def normalize_method_name(raw: str) -> str:
    return raw.replace(".", "_").lower()


def captured_arguments(
    descriptor: Descriptor, args: Sequence[Any], kwargs: Mapping[str, Any]
) -> Iterator[CapturedArgument]:
    for entry in descriptor:
        if not entry.keyword_only and entry.index < len(args):
            value = args[entry.index]
        elif entry.parameter in kwargs:
            value = kwargs[entry.parameter]
        elif entry.default is not inspect.Parameter.empty:
            value = entry.default
        else:
            continue
        yield CapturedArgument(tag_name=entry.tag_name, value=str(value))


@dataclass(frozen=True)
class TagResolver:
    """Builds the tag set for one call.

    Sources are applied lowest precedence first: method name, outcome,
    action, configured tags, then captured arguments. With
    ``qualify_with_module`` the derived method name includes the module, so
    same-named classes in different modules do not share a metric.
    """

    qualify_with_module: bool = False

    def method_name(self, config: MetricConfig, call_site: CallSite) -> str:
        if config.method_name:
            return normalize_method_name(config.method_name)
        if self.qualify_with_module:
            return normalize_method_name(call_site.module_qualified_name)
        return normalize_method_name(call_site.qualified_name)

    def resolve(
        self,
        config: MetricConfig,
        call_site: CallSite,
        descriptor: Descriptor = (),
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
        outcome: Optional[Outcome] = None,
    ) -> TagSet:
        tags: TagSet = {TAG_METHOD_NAME: self.method_name(config, call_site)}

        if outcome is not None:
            tags[TAG_METHOD_OUTCOME] = str(outcome)

        if config.action is not MethodAction.NONE:
            tags[TAG_METHOD_ACTION] = str(config.action)

        for key, value in config.tag_pairs:
            tags[key] = value

        for captured in captured_arguments(descriptor, args, kwargs or {}):
            tags[captured.tag_name] = captured.value
        return tags

