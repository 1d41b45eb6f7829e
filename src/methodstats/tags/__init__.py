from methodstats.tags.descriptor import AddAsTag, build_descriptor
from methodstats.tags.resolver import TagResolver

__all__ = [
    "AddAsTag",
    "TagResolver",
    "build_descriptor",
]
