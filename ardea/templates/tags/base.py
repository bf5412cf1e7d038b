"""
Tag handler base class.

A tag handler takes part in both halves of a template's life:

- ``process`` runs at compile time, once per tag occurrence, and declares
  what the tag needs (included templates, template parameters)
- ``render`` runs every time the generated template reaches the tag
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Protocol

from .. import ast

if TYPE_CHECKING:
    from ..runtime import RenderFrame


Body = Callable[[], None]


class TagContext(Protocol):
    """Compile-time services offered to ``TagHandler.process``."""

    def depend(self, path: str, location: ast.Location) -> None:
        """Declare a dependency on another template."""
        ...

    def declare_parameter(self, name: str) -> None:
        ...

    def error(self, message: str, location: ast.Location) -> None:
        """Report a malformed tag."""
        ...


class TagHandler(ABC):
    """
    Base class for tag handlers.

    Subclasses override ``render`` and, when they need compile-time checks,
    ``process``.
    """

    name: str = ""

    def process(self, tag: ast.Tag, context: TagContext) -> None:
        pass

    @abstractmethod
    def render(
        self,
        frame: "RenderFrame",
        parameters: Dict[str, Any],
        body: Optional[Body],
    ) -> None:
        """Write the tag output to ``frame``; ``body`` renders the tag body."""

    @staticmethod
    def literal(tag: ast.Tag, key: str, context: TagContext) -> Optional[str]:
        """
        Return a parameter that must be written as a literal string.

        Reports an error (and returns None) when the parameter is missing or
        is an expression.
        """
        value = tag.parameters.get(key)
        if value is None:
            context.error(f"Tag '{tag.name}' requires a '{key}' parameter", tag.location)
            return None
        if isinstance(value, ast.Expression):
            context.error(f"Tag '{tag.name}' parameter '{key}' must be a literal", tag.location)
            return None
        return value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
