"""
Ardea templates - the gtmpl dialect, compiled to Python modules.

Templates are parsed, checked (unknown tags, unresolved includes, include
cycles, invalid expressions) and compiled before they are rendered, so a
template set that compiles does not fail on structure at render time.

Example:
    from ardea.templates import Template, TemplateLoader

    class Home:
        index = Template("index.gtmpl")

        @view
        def show(self, name: str = "world"):
            return self.index.render(name=name)
"""

from .ast import Location
from .cache import TemplateCache
from .compiler import (
    CompilationResult,
    EmitContext,
    EmitPhase,
    FileSystemEmitContext,
    LoaderContext,
    MemoryEmitContext,
    ModuleGenerator,
    ProcessContext,
    ProcessPhase,
    ProcessResult,
    State,
    TemplateCompiler,
    create_environment,
)
from .dialects import DIALECTS, GTMPL, Dialect, dialect_for, register_dialect, target_path
from .loader import CompositeLoader, MemoryLoader, PackageLoader, TemplateLoader
from .models import (
    CANNOT_WRITE_RESOURCE,
    TEMPLATE_CYCLE,
    TEMPLATE_NOT_RESOLVED,
    TEMPLATE_SYNTAX_ERROR,
    UNKNOWN_TAG,
    CompilationError,
    TemplateModel,
)
from .parser import TemplateSyntaxError, parse
from .paths import TemplatePath
from .runtime import CompiledTemplate, RenderFrame, RenderResult, Template, TemplateRenderer
from .tags import TagHandler, TagRegistry

__all__ = [
    "Location",
    "TemplateCache",
    "CompilationResult",
    "EmitContext",
    "EmitPhase",
    "FileSystemEmitContext",
    "LoaderContext",
    "MemoryEmitContext",
    "ModuleGenerator",
    "ProcessContext",
    "ProcessPhase",
    "ProcessResult",
    "State",
    "TemplateCompiler",
    "create_environment",
    "DIALECTS",
    "GTMPL",
    "Dialect",
    "dialect_for",
    "register_dialect",
    "target_path",
    "CompositeLoader",
    "MemoryLoader",
    "PackageLoader",
    "TemplateLoader",
    "CANNOT_WRITE_RESOURCE",
    "TEMPLATE_CYCLE",
    "TEMPLATE_NOT_RESOLVED",
    "TEMPLATE_SYNTAX_ERROR",
    "UNKNOWN_TAG",
    "CompilationError",
    "TemplateModel",
    "TemplateSyntaxError",
    "parse",
    "TemplatePath",
    "CompiledTemplate",
    "RenderFrame",
    "RenderResult",
    "Template",
    "TemplateRenderer",
    "TagHandler",
    "TagRegistry",
]
