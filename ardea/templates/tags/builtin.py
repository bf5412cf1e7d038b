"""
Built-in tags.

    #{include path=fragment.gtmpl/}        render another template in place
    #{decorate path=layout.gtmpl/}         render the rest of this template
                                           inside layout.gtmpl, at #{insert/}
    #{decorate path=layout.gtmpl}...#{/decorate}
    #{insert/}                             the decorated content or tag body
    #{title value=${page.title}/}          set the response title
    #{param name=user default=guest/}      declare a template parameter
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .. import ast
from ..paths import TemplatePath
from .base import Body, TagContext, TagHandler


class IncludeTag(TagHandler):
    name = "include"

    def process(self, tag: ast.Tag, context: TagContext) -> None:
        path = self.literal(tag, "path", context)
        if path is not None:
            context.depend(path, tag.location)

    def render(self, frame, parameters: Dict[str, Any], body: Optional[Body]) -> None:
        frame.render_template(TemplatePath.parse(parameters["path"]).as_absolute())


class DecorateTag(TagHandler):
    name = "decorate"

    def process(self, tag: ast.Tag, context: TagContext) -> None:
        path = self.literal(tag, "path", context)
        if path is not None:
            context.depend(path, tag.location)

    def render(self, frame, parameters: Dict[str, Any], body: Optional[Body]) -> None:
        path = TemplatePath.parse(parameters["path"]).as_absolute()
        if body is None:
            frame.decorate(path)
        else:
            frame.render_template(path, insert=body)


class InsertTag(TagHandler):
    name = "insert"

    def render(self, frame, parameters: Dict[str, Any], body: Optional[Body]) -> None:
        frame.insert()


class TitleTag(TagHandler):
    name = "title"

    def process(self, tag: ast.Tag, context: TagContext) -> None:
        if "value" not in tag.parameters:
            context.error("Tag 'title' requires a 'value' parameter", tag.location)

    def render(self, frame, parameters: Dict[str, Any], body: Optional[Body]) -> None:
        value = parameters.get("value")
        frame.title = None if value is None else str(value)


class ParamTag(TagHandler):
    name = "param"

    def process(self, tag: ast.Tag, context: TagContext) -> None:
        name = self.literal(tag, "name", context)
        if name is not None:
            context.declare_parameter(name)

    def render(self, frame, parameters: Dict[str, Any], body: Optional[Body]) -> None:
        frame.require(parameters["name"], parameters.get("default"), "default" in parameters)


BUILTIN_TAGS = {
    handler.name: handler
    for handler in (IncludeTag, DecorateTag, InsertTag, TitleTag, ParamTag)
}
