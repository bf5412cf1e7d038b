"""
Template models and compilation diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from . import ast
from .paths import TemplatePath


# Compilation error codes
TEMPLATE_CYCLE = "TEMPLATE_CYCLE"
UNKNOWN_TAG = "UNKNOWN_TAG"
TEMPLATE_NOT_RESOLVED = "TEMPLATE_NOT_RESOLVED"
TEMPLATE_SYNTAX_ERROR = "TEMPLATE_SYNTAX_ERROR"
CANNOT_WRITE_RESOURCE = "CANNOT_WRITE_RESOURCE"


@dataclass(frozen=True)
class CompilationError:
    """
    A compile-time diagnostic.

    Attributes:
        code: One of the error codes above
        arguments: Ordered arguments, stable for tooling and tests
        source: Template the error was found in
        location: Position in ``source``
    """

    code: str
    arguments: Tuple[str, ...]
    source: Optional[str] = None
    location: Optional[ast.Location] = None

    def __str__(self) -> str:
        where = ""
        if self.source:
            where = f" in {self.source}"
            if self.location:
                where += f" at {self.location}"
        return f"{self.code}{list(self.arguments)}{where}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "arguments": list(self.arguments),
            "source": self.source,
            "location": str(self.location) if self.location else None,
        }


@dataclass(frozen=True)
class TemplateModel:
    """
    A loaded and parsed template.

    A model is immutable; a changed source produces a new model with
    ``version + 1``.

    Attributes:
        path: Absolute template path
        root: Parsed AST
        last_modified: Source timestamp the model was built from
        version: Starts at 1
        dependencies: Absolute paths of included/decorated templates, source order
        parameters: Names declared with the ``param`` tag
    """

    path: TemplatePath
    root: ast.Template
    last_modified: float
    version: int = 1
    dependencies: Tuple[TemplatePath, ...] = ()
    parameters: Tuple[str, ...] = ()
    source: str = field(default="", repr=False, compare=False)

    @property
    def key(self) -> str:
        return str(self.path)
