"""
Template dialects.

A dialect maps a template source extension to the extension of the module
the compiler generates for it. The table is consulted by the loader (which
files are templates) and by the emitter (where generated modules go).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .paths import TemplatePath


@dataclass(frozen=True)
class Dialect:
    name: str
    source_extension: str
    target_extension: str


GTMPL = Dialect(name="gtmpl", source_extension="gtmpl", target_extension="py")

DIALECTS: Dict[str, Dialect] = {GTMPL.source_extension: GTMPL}


def register_dialect(dialect: Dialect) -> None:
    DIALECTS[dialect.source_extension] = dialect


def dialect_for(path: TemplatePath) -> Optional[Dialect]:
    extension = path.extension
    return DIALECTS.get(extension) if extension else None


def target_path(path: TemplatePath) -> TemplatePath:
    """
    Path of the module generated for a template source.

    Raises:
        ValueError: If no dialect handles the source extension
    """
    dialect = dialect_for(path)
    if dialect is None:
        raise ValueError(f"No template dialect for '{path}'")
    return path.with_extension(dialect.target_extension)
