from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Mapping, Sequence, Tuple, Union

TAG_SEPARATOR = "!"
KEY_VALUE_SEPARATOR = "="

# Characters the line-protocol style storage layer treats as delimiters.
_RESERVED = re.compile(r"(?<!\\)([ ,=])")
_ESCAPED = re.compile(r"\\([ ,=])")
_UNESCAPED_EQUALS = re.compile(r"(?<!\\)=")


class TagConfigurationError(ValueError):
    """Tag configuration that cannot be turned into key/value pairs."""


def sanitize(value: str) -> str:
    return _RESERVED.sub(r"\\\1", value)


def unescape(value: str) -> str:
    return _ESCAPED.sub(r"\1", value)


def _is_empty(value: Any) -> bool:
    return value is None or str(value) == ""


def pair_tokens(tokens: Sequence[Any]) -> Tuple[Tuple[Any, Any], ...]:
    if len(tokens) % 2 != 0:
        raise TagConfigurationError(
            "Tag list must contain an even number of keys and values: "
            f"got {len(tokens)} tokens"
        )
    return tuple((tokens[i], tokens[i + 1]) for i in range(0, len(tokens), 2))


def parse_flat_tags(raw: str | None) -> Tuple[Tuple[str, str], ...]:
    """Split ``"key,value,key,value"`` into ordered pairs.

    Whitespace around tokens is ignored and trailing empty tokens are dropped,
    so ``"region,us-east,"`` is accepted. An odd token count raises
    :class:`TagConfigurationError`.
    """
    if raw is None or not raw.strip():
        return ()
    tokens = [token.strip() for token in raw.split(",")]
    while tokens and not tokens[-1]:
        tokens.pop()
    return pair_tokens(tokens)


class MetricNameBuilder:
    def __init__(self, metric_name: str) -> None:
        self._name = metric_name

    def with_tag(self, key: Any, value: Any) -> "MetricNameBuilder":
        if _is_empty(key) or _is_empty(value):
            return self
        self._name = (
            f"{self._name}{TAG_SEPARATOR}{sanitize(str(key))}"
            f"{KEY_VALUE_SEPARATOR}{sanitize(str(value))}"
        )
        return self

    def with_tags(
        self, tags: Union[Mapping[Any, Any], Sequence[Any], str]
    ) -> "MetricNameBuilder":
        """Append every tag, sorted by key.

        ``tags`` is a mapping, a flat ``[key, value, ...]`` sequence or a
        comma-separated string of the same tokens. Later duplicates in a flat
        sequence replace earlier ones.
        """
        if isinstance(tags, Mapping):
            items: Iterable[Tuple[Any, Any]] = tags.items()
        elif isinstance(tags, str):
            items = dict(parse_flat_tags(tags)).items()
        else:
            items = dict(pair_tokens(list(tags))).items()
        for key, value in sorted(items, key=lambda item: str(item[0])):
            self.with_tag(key, value)
        return self

    def build(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"MetricNameBuilder({self._name!r})"


def name(metric_name: str) -> MetricNameBuilder:
    return MetricNameBuilder(metric_name)


def parse_metric_name(encoded: str) -> Tuple[str, Dict[str, str]]:
    """Split an encoded metric name back into its base name and tags.

    Tag values are never allowed to contain ``!``, which is not escaped.
    """
    segments = encoded.split(TAG_SEPARATOR)
    base_name = segments[0]
    if not base_name:
        raise ValueError(f"Invalid metric name: {encoded!r}")
    tags: Dict[str, str] = {}
    for segment in segments[1:]:
        parts = _UNESCAPED_EQUALS.split(segment, maxsplit=1)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValueError(f"Invalid tag segment {segment!r} in {encoded!r}")
        tags[unescape(parts[0])] = unescape(parts[1])
    return base_name, tags
