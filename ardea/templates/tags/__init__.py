"""
Ardea tags - handlers for ``#{name ...}`` template constructs.
"""

from .base import Body, TagContext, TagHandler
from .builtin import BUILTIN_TAGS, DecorateTag, IncludeTag, InsertTag, ParamTag, TitleTag
from .registry import TagRegistry, import_object
from .simple import SimpleTagHandler, discover_simple_tags

__all__ = [
    "Body",
    "TagContext",
    "TagHandler",
    "BUILTIN_TAGS",
    "DecorateTag",
    "IncludeTag",
    "InsertTag",
    "ParamTag",
    "TitleTag",
    "TagRegistry",
    "import_object",
    "SimpleTagHandler",
    "discover_simple_tags",
]
