"""
Template Compiler - turns template sources into Python modules.

Compilation runs in two phases:

- ``ProcessPhase`` loads and parses every template reachable from the
  roots, resolves tags and includes, and detects include cycles. It walks
  the include graph depth-first with an explicit stack, each template
  moving through Unresolved -> Resolving -> Resolved | Error.
- ``EmitPhase`` generates one Python module per resolved template and
  hands it to an ``EmitContext``.

Every problem is reported as a ``CompilationError`` with a stable code and
ordered arguments; ``TemplateCompiler`` raises ``TemplateCompilationFault``
when any were found.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Tuple, Union

import jinja2
from jinja2 import TemplateNotFound
from jinja2.sandbox import SandboxedEnvironment

from ..faults import TemplateCompilationFault
from . import ast
from .dialects import target_path
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
from .tags import TagHandler, TagRegistry


logger = logging.getLogger("ardea.templates.compiler")


def create_environment(loader: Optional[jinja2.BaseLoader] = None) -> SandboxedEnvironment:
    """Sandboxed Jinja2 environment used to compile template expressions."""
    return SandboxedEnvironment(loader=loader, autoescape=False)


# ============================================================================
# Contexts
# ============================================================================

class ProcessContext(Protocol):
    """What the process phase needs from its surroundings."""

    def resolve_template(self, path: TemplatePath) -> Optional[TemplatePath]:
        """Absolute path of an existing template, or None."""
        ...

    def last_modified(self, path: TemplatePath) -> Optional[float]:
        ...

    def load_template(self, path: TemplatePath) -> Optional[str]:
        ...

    def resolve_tag_handler(self, name: str) -> Optional[TagHandler]:
        ...


class EmitContext(Protocol):
    """What the emit phase needs from its surroundings."""

    def resolve_tag_handler(self, name: str) -> Optional[TagHandler]:
        ...

    def create_resource(self, path: TemplatePath, content: str) -> None:
        """
        Store a generated module.

        Raises:
            OSError: If the resource exists or cannot be written
        """
        ...


class LoaderContext:
    """ProcessContext over a template loader and a tag registry."""

    def __init__(self, loader: jinja2.BaseLoader, registry: TagRegistry):
        self.loader = loader
        self.registry = registry

    def resolve_template(self, path: TemplatePath) -> Optional[TemplatePath]:
        absolute = path.as_absolute()
        return absolute if self.last_modified(absolute) is not None else None

    def last_modified(self, path: TemplatePath) -> Optional[float]:
        return self.loader.last_modified(path)

    def load_template(self, path: TemplatePath) -> Optional[str]:
        try:
            source, _, _ = self.loader.get_source(None, path.canonical)
        except TemplateNotFound:
            return None
        return source

    def resolve_tag_handler(self, name: str) -> Optional[TagHandler]:
        return self.registry.resolve(name)

    def list_templates(self) -> List[str]:
        return self.loader.list_templates()


class MemoryEmitContext:
    """Keeps generated modules in memory, keyed by target path."""

    def __init__(self, tags: Union[TagRegistry, ProcessContext]):
        self._tags = tags
        self.resources: Dict[str, str] = {}

    def resolve_tag_handler(self, name: str) -> Optional[TagHandler]:
        if isinstance(self._tags, TagRegistry):
            return self._tags.resolve(name)
        return self._tags.resolve_tag_handler(name)

    def create_resource(self, path: TemplatePath, content: str) -> None:
        key = str(path.as_absolute())
        if key in self.resources:
            raise FileExistsError(key)
        self.resources[key] = content


class FileSystemEmitContext(MemoryEmitContext):
    """
    Writes generated modules below ``root``.

    Args:
        root: Output directory
        tags: Tag registry
        overwrite: Replace modules left by a previous compilation
    """

    def __init__(self, root: Union[str, Path], tags: Union[TagRegistry, ProcessContext], overwrite: bool = False):
        super().__init__(tags)
        self.root = Path(root)
        self.overwrite = overwrite

    def create_resource(self, path: TemplatePath, content: str) -> None:
        file = self.root.joinpath(*path.names)
        file.parent.mkdir(parents=True, exist_ok=True)
        with open(file, "w" if self.overwrite else "x", encoding="utf-8") as f:
            f.write(content)
        self.resources[str(path.as_absolute())] = content


# ============================================================================
# Process phase
# ============================================================================

class State(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    ERROR = "error"


class _Unit:
    """Compile-time view of one template, offered to tag handlers."""

    def __init__(self, context: ProcessContext, path: TemplatePath):
        self.context = context
        self.path = path
        self.dependencies: Dict[str, Tuple[TemplatePath, ast.Location]] = {}
        self.parameters: List[str] = []
        self.errors: List[CompilationError] = []

    def depend(self, path: str, location: ast.Location) -> None:
        try:
            parsed = TemplatePath.parse(path)
        except ValueError as e:
            self.error(str(e), location)
            return
        resolved = self.context.resolve_template(parsed)
        if resolved is None:
            self.errors.append(CompilationError(TEMPLATE_NOT_RESOLVED, (path,), str(self.path), location))
            return
        self.dependencies.setdefault(str(resolved), (resolved, location))

    def declare_parameter(self, name: str) -> None:
        if name not in self.parameters:
            self.parameters.append(name)

    def error(self, message: str, location: ast.Location) -> None:
        self.errors.append(
            CompilationError(TEMPLATE_SYNTAX_ERROR, (str(self.path), message), str(self.path), location)
        )


@dataclass
class ProcessResult:
    """Resolved models in resolution order, and every error found."""

    models: Dict[str, TemplateModel] = field(default_factory=dict)
    errors: List[CompilationError] = field(default_factory=list)
    states: Dict[str, State] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class ProcessPhase:
    """
    Resolve templates and their dependency graph.

    Args:
        context: Template and tag resolution
        environment: Jinja2 environment validating expressions
        previous: Models from an earlier compilation; a template whose
            timestamp did not change reuses its model, a changed one gets
            ``version + 1``
    """

    def __init__(
        self,
        context: ProcessContext,
        environment: Optional[jinja2.Environment] = None,
        previous: Optional[Mapping[str, TemplateModel]] = None,
    ):
        self.context = context
        self.environment = environment or create_environment()
        self.previous = dict(previous or {})
        self.models: Dict[str, TemplateModel] = {}
        self.states: Dict[str, State] = {}
        self.errors: List[CompilationError] = []
        self._links: Dict[str, Dict[str, Optional[ast.Location]]] = {}

    def process(self, roots: Iterable[Union[str, TemplatePath]]) -> ProcessResult:
        """
        Resolve every root, in the given order.

        Dependencies are visited in source order, which makes the reported
        errors deterministic.
        """
        for root in roots:
            self.resolve_template(root)
        models = {key: model for key, model in self.models.items() if self.states.get(key) is State.RESOLVED}
        return ProcessResult(models, list(self.errors), dict(self.states))

    def resolve_template(self, path: Union[str, TemplatePath]) -> Optional[TemplatePath]:
        """Resolve one template; returns its absolute path, or None on error."""
        if isinstance(path, str):
            try:
                path = TemplatePath.parse(path)
            except ValueError:
                self._report(TEMPLATE_NOT_RESOLVED, (path,))
                return None
        absolute = self.context.resolve_template(path)
        if absolute is None:
            self._report(TEMPLATE_NOT_RESOLVED, (str(path),))
            return None
        self._traverse(absolute)
        return absolute if self.state(absolute) is State.RESOLVED else None

    def state(self, path: TemplatePath) -> State:
        return self.states.get(str(path), State.UNRESOLVED)

    def _traverse(self, start: TemplatePath) -> None:
        if self.state(start) is not State.UNRESOLVED or not self._enter(start):
            return
        stack: List[Tuple[str, Iterator[TemplatePath]]] = [(str(start), self._dependencies(start))]
        while stack:
            key, dependencies = stack[-1]
            dependency = next(dependencies, None)
            if dependency is None:
                self.states[key] = State.RESOLVED
                stack.pop()
                continue
            state = self.state(dependency)
            if state is State.RESOLVING:
                keys = [k for k, _ in stack]
                cycle = keys[keys.index(str(dependency)):]
                self._report(
                    TEMPLATE_CYCLE,
                    (cycle[0], "->".join(cycle)),
                    source=key,
                    location=self._links[key].get(str(dependency)),
                )
                for k in keys:
                    self.states[k] = State.ERROR
                return
            if state is State.UNRESOLVED and self._enter(dependency):
                stack.append((str(dependency), self._dependencies(dependency)))

    def _dependencies(self, path: TemplatePath) -> Iterator[TemplatePath]:
        return iter(self.models[str(path)].dependencies)

    def _enter(self, path: TemplatePath) -> bool:
        key = str(path)
        self.states[key] = State.RESOLVING
        model = self._load(path)
        if model is None:
            self.states[key] = State.ERROR
            return False
        self.models[key] = model
        return True

    def _load(self, path: TemplatePath) -> Optional[TemplateModel]:
        key = str(path)
        last_modified = self.context.last_modified(path)
        previous = self.previous.get(key)
        if previous is not None and last_modified is not None and previous.last_modified == last_modified:
            self._links[key] = {str(d): None for d in previous.dependencies}
            return previous

        source = self.context.load_template(path)
        if source is None or last_modified is None:
            self._report(TEMPLATE_NOT_RESOLVED, (key,))
            return None
        try:
            root = parse(source)
        except TemplateSyntaxError as e:
            self._report(TEMPLATE_SYNTAX_ERROR, (key, e.reason), source=key, location=e.location)
            return None

        unit = _Unit(self.context, path)
        self._analyse(root, unit)
        if unit.errors:
            for error in unit.errors:
                self._record(error)
            return None

        self._links[key] = {k: location for k, (_, location) in unit.dependencies.items()}
        return TemplateModel(
            path=path,
            root=root,
            last_modified=last_modified,
            version=previous.version + 1 if previous is not None else 1,
            dependencies=tuple(p for p, _ in unit.dependencies.values()),
            parameters=tuple(unit.parameters),
            source=source,
        )

    def _analyse(self, root: ast.Template, unit: _Unit) -> None:
        for node in ast.walk(root):
            for expression in ast.expressions_of(node):
                try:
                    self.environment.compile_expression(expression.source)
                except jinja2.TemplateSyntaxError as e:
                    unit.error(f"Invalid expression '{expression.source}': {e.message}", expression.location)
            if isinstance(node, ast.Tag):
                handler = self.context.resolve_tag_handler(node.name)
                if handler is None:
                    unit.errors.append(CompilationError(UNKNOWN_TAG, (node.name,), str(unit.path), node.location))
                else:
                    handler.process(node, unit)

    def _report(
        self,
        code: str,
        arguments: Tuple[str, ...],
        source: Optional[str] = None,
        location: Optional[ast.Location] = None,
    ) -> None:
        self._record(CompilationError(code, arguments, source, location))

    def _record(self, error: CompilationError) -> None:
        logger.error("Template error: %s", error)
        self.errors.append(error)


# ============================================================================
# Emit phase
# ============================================================================

class ModuleGenerator:
    """
    Generate the Python module of one template.

    The module exposes ``PATH``, ``VERSION``, ``PARAMETERS``, the source of
    its ``EXPRESSIONS`` (compiled into ``E`` when loaded) and a
    ``render(frame)`` function driving a ``RenderFrame``.
    """

    def __init__(self, model: TemplateModel, context: EmitContext):
        self.model = model
        self.context = context
        self.errors: List[CompilationError] = []
        self.expressions: List[str] = []
        self._lines: List[str] = []
        self._indent = 0
        self._ids = 0

    def generate(self) -> str:
        self._indent = 1
        self._line("write = frame.write")
        self._line("output = frame.output")
        self._nodes(self.model.root.children)
        header = [
            f"# Generated from {self.model.path}, do not edit.",
            f"PATH = {str(self.model.path)!r}",
            f"VERSION = {self.model.version!r}",
            f"PARAMETERS = {tuple(self.model.parameters)!r}",
            f"EXPRESSIONS = {tuple(self.expressions)!r}",
            "E = ()",
            "",
            "",
            "def render(frame):",
        ]
        return "\n".join(header + self._lines) + "\n"

    def _line(self, text: str) -> None:
        self._lines.append("    " * self._indent + text)

    def _name(self, prefix: str) -> str:
        self._ids += 1
        return f"_{prefix}{self._ids}"

    def _expression(self, expression: ast.Expression) -> str:
        self.expressions.append(expression.source)
        return f"frame.eval(E[{len(self.expressions) - 1}])"

    def _nodes(self, nodes: List[ast.Node]) -> None:
        if not nodes:
            self._line("pass")
        for node in nodes:
            self._node(node)

    def _block(self, header: str, nodes: List[ast.Node]) -> None:
        self._line(header)
        self._indent += 1
        self._nodes(nodes)
        self._indent -= 1

    def _node(self, node: ast.Node) -> None:
        if isinstance(node, ast.Text):
            self._line(f"write({node.text!r})")
        elif isinstance(node, ast.Expression):
            self._line(f"output({self._expression(node)})")
        elif isinstance(node, ast.If):
            for index, (condition, body) in enumerate(node.branches):
                keyword = "if" if index == 0 else "elif"
                self._block(f"{keyword} {self._expression(condition)}:", body)
            if node.orelse is not None:
                self._block("else:", node.orelse)
        elif isinstance(node, ast.For):
            item = self._name("item")
            self._line("frame.enter()")
            self._line("try:")
            self._indent += 1
            self._line(f"for {item} in frame.iterate({self._expression(node.iterable)}):")
            self._indent += 1
            self._line(f"frame.bind({node.targets!r}, {item})")
            self._nodes(node.body)
            self._indent -= 2
            self._line("finally:")
            self._indent += 1
            self._line("frame.leave()")
            self._indent -= 1
        elif isinstance(node, ast.Set):
            self._line(f"frame.assign({node.name!r}, {self._expression(node.expression)})")
        elif isinstance(node, ast.Tag):
            self._tag(node)

    def _tag(self, tag: ast.Tag) -> None:
        if self.context.resolve_tag_handler(tag.name) is None:
            self.errors.append(CompilationError(UNKNOWN_TAG, (tag.name,), str(self.model.path), tag.location))
            return
        items = []
        for key, value in tag.parameters.items():
            rendered = self._expression(value) if isinstance(value, ast.Expression) else repr(value)
            items.append(f"{key!r}: {rendered}")
        parameters = "{" + ", ".join(items) + "}"
        if tag.body is None:
            self._line(f"frame.tag({tag.name!r}, {parameters})")
        else:
            body = self._name("body")
            self._block(f"def {body}():", tag.body)
            self._line(f"frame.tag({tag.name!r}, {parameters}, {body})")


class EmitPhase:
    """Generate and store the module of every resolved template."""

    def __init__(self, context: EmitContext):
        self.context = context
        self.sources: Dict[str, str] = {}

    def emit(self, models: Iterable[TemplateModel]) -> List[CompilationError]:
        errors: List[CompilationError] = []
        for model in models:
            generator = ModuleGenerator(model, self.context)
            source = generator.generate()
            if generator.errors:
                errors.extend(generator.errors)
                continue
            target = target_path(model.path)
            try:
                self.context.create_resource(target, source)
            except OSError as e:
                error = CompilationError(CANNOT_WRITE_RESOURCE, (str(target),), str(model.path))
                logger.error("Template error: %s (%s)", error, e)
                errors.append(error)
                continue
            self.sources[model.key] = source
        return errors


# ============================================================================
# Compiler
# ============================================================================

@dataclass
class CompilationResult:
    """Resolved models and generated module sources, keyed by template path."""

    models: Dict[str, TemplateModel]
    sources: Dict[str, str]


class TemplateCompiler:
    """
    Compile a set of templates.

    Example:
        compiler = TemplateCompiler(TemplateLoader("templates"), TagRegistry.with_builtins())
        result = compiler.compile()
    """

    def __init__(
        self,
        loader: jinja2.BaseLoader,
        registry: TagRegistry,
        environment: Optional[jinja2.Environment] = None,
    ):
        self.context = LoaderContext(loader, registry)
        self.registry = registry
        self.environment = environment or create_environment(loader)

    def compile(
        self,
        roots: Optional[Iterable[Union[str, TemplatePath]]] = None,
        *,
        previous: Optional[Mapping[str, TemplateModel]] = None,
        emit_context: Optional[EmitContext] = None,
    ) -> CompilationResult:
        """
        Process then emit.

        Args:
            roots: Templates to start from, every template when None
            previous: Models of an earlier compilation, for versioning
            emit_context: Where modules go, in memory when None

        Raises:
            TemplateCompilationFault: If any error was found
        """
        if roots is None:
            roots = self.context.list_templates()
        process = ProcessPhase(self.context, self.environment, previous)
        result = process.process(roots)
        errors = list(result.errors)
        emit = EmitPhase(emit_context or MemoryEmitContext(self.registry))
        if not errors:
            errors.extend(emit.emit(result.models.values()))
        if errors:
            logger.info("Template compilation failed with %d error(s)", len(errors))
            raise TemplateCompilationFault(errors)
        logger.info("Compiled %d template(s)", len(result.models))
        return CompilationResult(result.models, emit.sources)
