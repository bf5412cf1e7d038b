"""
Template paths.

Templates are keyed by canonical absolute path (``/layouts/main.gtmpl``).
Relative paths written in templates and controllers resolve against the
template root.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class TemplatePath:
    """
    A parsed template path.

    Attributes:
        names: Path segments, file name last
        absolute: Whether the path was written with a leading slash
    """

    names: Tuple[str, ...]
    absolute: bool = False

    @classmethod
    def parse(cls, value: str) -> "TemplatePath":
        """
        Parse and normalize a path.

        Raises:
            ValueError: If the path is empty or escapes the template root
        """
        if not value or not value.strip():
            raise ValueError("Empty template path")
        value = value.strip().replace("\\", "/")
        absolute = value.startswith("/")
        names = []
        for name in value.split("/"):
            if not name or name == ".":
                continue
            if name == "..":
                if not names:
                    raise ValueError(f"Illegal template path '{value}'")
                names.pop()
            else:
                names.append(name)
        if not names:
            raise ValueError(f"Illegal template path '{value}'")
        return cls(tuple(names), absolute)

    def as_absolute(self) -> "TemplatePath":
        return self if self.absolute else TemplatePath(self.names, True)

    @property
    def name(self) -> str:
        return self.names[-1]

    @property
    def stem(self) -> str:
        name = self.name
        return name.rsplit(".", 1)[0] if "." in name else name

    @property
    def extension(self) -> Optional[str]:
        name = self.name
        return name.rsplit(".", 1)[1] if "." in name else None

    @property
    def parent(self) -> Tuple[str, ...]:
        return self.names[:-1]

    @property
    def canonical(self) -> str:
        """Canonical form, without the leading slash."""
        return "/".join(self.names)

    def with_extension(self, extension: str) -> "TemplatePath":
        return TemplatePath(self.parent + (f"{self.stem}.{extension}",), self.absolute)

    def __str__(self) -> str:
        return ("/" if self.absolute else "") + self.canonical
