"""
Simple tags - tags written as templates.

Every template under ``tags/`` in the template root defines a tag named
after the file: ``tags/box.gtmpl`` is used as ``#{box color=red}...#{/box}``.
The tag template sees its parameters as variables and as ``parameters``,
and renders the caller's body at ``#{insert/}``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from .. import ast
from ..paths import TemplatePath
from .base import Body, TagContext, TagHandler


TAGS_FOLDER = "tags"


class SimpleTagHandler(TagHandler):
    """
    Tag backed by a template.

    Args:
        name: Tag name
        path: Absolute path of the tag template
    """

    def __init__(self, name: str, path: TemplatePath):
        self.name = name
        self.path = path.as_absolute()

    def process(self, tag: ast.Tag, context: TagContext) -> None:
        context.depend(str(self.path), tag.location)

    def render(self, frame, parameters: Dict[str, Any], body: Optional[Body]) -> None:
        variables = dict(parameters)
        variables["parameters"] = dict(parameters)
        frame.render_template(self.path, variables=variables, isolated=True, insert=body)


def discover_simple_tags(names: Iterable[str]) -> Iterator[Tuple[str, TemplatePath]]:
    """Yield (tag name, template path) for every template directly under ``tags/``."""
    for name in names:
        path = TemplatePath.parse(name)
        if path.parent == (TAGS_FOLDER,):
            yield path.stem, path.as_absolute()
