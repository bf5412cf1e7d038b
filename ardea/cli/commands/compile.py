"""Template compilation command.

Compiles every template under a root directory with the built-in tags,
the simple tags found under ``tags/`` and any tag libraries given, and
optionally writes the generated modules to an output directory.
"""

from pathlib import Path
from typing import Optional, Sequence

from ...templates import (
    CompilationResult,
    CompositeLoader,
    FileSystemEmitContext,
    TagRegistry,
    TemplateCompiler,
    TemplateLoader,
)


def compile_templates(
    root: Path,
    output: Optional[Path] = None,
    libraries: Sequence[str] = (),
    overwrite: bool = False,
) -> CompilationResult:
    """
    Compile a template tree.

    Args:
        root: Template root directory
        output: Directory receiving the generated modules, none written when None
        libraries: Tag library modules exposing ``TAGS`` or shipping templates
        overwrite: Replace modules already present in ``output``

    Raises:
        TemplateCompilationFault: If any template fails to compile
        ConfigInvalidFault: If a tag library cannot be loaded
    """
    loader = CompositeLoader([TemplateLoader(root)])
    registry = TagRegistry.with_builtins()
    names = loader.list_templates()
    registry.register_simple_tags(names)
    loader.loaders.extend(registry.register_libraries(list(libraries)))

    emit_context = None
    if output is not None:
        emit_context = FileSystemEmitContext(output, registry, overwrite=overwrite)
    compiler = TemplateCompiler(loader, registry)
    return compiler.compile(sorted("/" + name for name in names), emit_context=emit_context)
