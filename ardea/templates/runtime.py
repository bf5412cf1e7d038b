"""
Template runtime - executes generated template modules.

A generated module drives a ``RenderFrame``: it writes text, prints
expression values, opens variable scopes and calls tags. The frame owns
the output buffers, the variable scopes, the stack of bodies available to
``#{insert/}`` and the title set with ``#{title/}``.

Controllers use templates through the ``Template`` descriptor:

    class Home:
        index = Template("index.gtmpl")

        @view
        def show(self):
            return self.index.render(name="world")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import jinja2
from markupsafe import escape

from ..faults import Fault, TemplateRenderFault
from ..response import Content
from ..streaming import ChunkBuffer
from .models import TemplateModel
from .paths import TemplatePath
from .tags import Body, TagHandler, TagRegistry

if TYPE_CHECKING:
    from .cache import TemplateCache


logger = logging.getLogger("ardea.templates.runtime")


# ============================================================================
# Compiled templates
# ============================================================================

class CompiledTemplate:
    """A loaded template module."""

    __slots__ = ("path", "version", "parameters", "source", "_render")

    def __init__(
        self,
        path: TemplatePath,
        version: int,
        parameters: Tuple[str, ...],
        source: str,
        render: Callable[["RenderFrame"], None],
    ):
        self.path = path
        self.version = version
        self.parameters = parameters
        self.source = source
        self._render = render

    def render(self, frame: "RenderFrame") -> None:
        self._render(frame)

    def __repr__(self) -> str:
        return f"CompiledTemplate({self.path}, version={self.version})"


def load_module(model: TemplateModel, source: str, environment: jinja2.Environment) -> CompiledTemplate:
    """Execute a generated module and compile its expressions."""
    code = compile(source, f"<template {model.path}>", "exec")
    namespace: Dict[str, Any] = {"__name__": f"ardea.templates.generated.{model.path.stem}"}
    exec(code, namespace)
    namespace["E"] = tuple(environment.compile_expression(expr) for expr in namespace["EXPRESSIONS"])
    return CompiledTemplate(
        model.path,
        namespace["VERSION"],
        tuple(namespace["PARAMETERS"]),
        source,
        namespace["render"],
    )


# ============================================================================
# Render frame
# ============================================================================

class _Invocation:
    __slots__ = ("template", "decorator")

    def __init__(self, template: CompiledTemplate):
        self.template = template
        self.decorator: Optional[TemplatePath] = None


class RenderFrame:
    """
    State of one render.

    Args:
        renderer: Renderer resolving templates and tags
        variables: Variables visible to the rendered template
    """

    def __init__(self, renderer: "TemplateRenderer", variables: Optional[Mapping[str, Any]] = None):
        self.renderer = renderer
        self.title: Optional[str] = None
        self._scopes: List[Dict[str, Any]] = [dict(variables or {})]
        self._buffers: List[List[str]] = [[]]
        self._inserts: List[Body] = []
        self._invocations: List[_Invocation] = []

    @property
    def current_path(self) -> Optional[TemplatePath]:
        return self._invocations[-1].template.path if self._invocations else None

    def result(self) -> str:
        return "".join(self._buffers[0])

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def write(self, text: str) -> None:
        self._buffers[-1].append(text)

    def output(self, value: Any) -> None:
        """Print an expression value, escaped when autoescape is on."""
        if value is None or isinstance(value, jinja2.Undefined):
            return
        if self.renderer.autoescape:
            self._buffers[-1].append(str(escape(value)))
        else:
            self._buffers[-1].append(str(value))

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def variables(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for scope in self._scopes:
            merged.update(scope)
        return merged

    def eval(self, expression: Callable[..., Any]) -> Any:
        try:
            return expression(**self.variables())
        except Fault:
            raise
        except Exception as e:
            raise TemplateRenderFault(str(self.current_path), str(e)) from e

    def iterate(self, value: Any) -> Iterable[Any]:
        if value is None or isinstance(value, jinja2.Undefined):
            return ()
        return value

    def enter(self) -> None:
        self._scopes.append({})

    def leave(self) -> None:
        self._scopes.pop()

    def bind(self, names: Sequence[str], value: Any) -> None:
        scope = self._scopes[-1]
        if len(names) == 1:
            scope[names[0]] = value
        else:
            values = tuple(value)
            if len(values) != len(names):
                raise TemplateRenderFault(
                    str(self.current_path),
                    f"cannot unpack {len(values)} values into {', '.join(names)}",
                )
            scope.update(zip(names, values))

    def assign(self, name: str, value: Any) -> None:
        self._scopes[-1][name] = value

    def require(self, name: str, default: Any = None, has_default: bool = False) -> None:
        """Check a declared template parameter, applying its default."""
        if name in self.variables():
            return
        if not has_default:
            raise TemplateRenderFault(str(self.current_path), f"missing parameter '{name}'")
        self.assign(name, default)

    # ------------------------------------------------------------------
    # Tags and composition
    # ------------------------------------------------------------------

    def tag(self, name: str, parameters: Dict[str, Any], body: Optional[Body] = None) -> None:
        handler = self.renderer.tag_handler(name)
        if handler is None:
            raise TemplateRenderFault(str(self.current_path), f"unknown tag '{name}'")
        handler.render(self, parameters, self._bind_body(body) if body is not None else None)

    def _bind_body(self, body: Body) -> Body:
        scopes = self._scopes

        def invoke() -> None:
            saved = self._scopes
            self._scopes = scopes
            try:
                body()
            finally:
                self._scopes = saved

        return invoke

    def insert(self) -> None:
        """Render the innermost pending body (decorated content or tag body)."""
        if not self._inserts:
            return
        body = self._inserts.pop()
        try:
            body()
        finally:
            self._inserts.append(body)

    def decorate(self, path: TemplatePath) -> None:
        """Render the current template inside ``path`` once it completes."""
        self._invocations[-1].decorator = path

    def render_template(
        self,
        path: TemplatePath,
        variables: Optional[Mapping[str, Any]] = None,
        *,
        isolated: bool = False,
        insert: Optional[Body] = None,
    ) -> None:
        """
        Render a template into the current output.

        Args:
            path: Absolute template path
            variables: Extra variables for the template
            isolated: Hide the caller's variables
            insert: Body rendered at ``#{insert/}``
        """
        template = self.renderer.load(path)
        scope = dict(variables or {})
        saved = self._scopes
        self._scopes = [scope] if isolated else saved + [scope]
        invocation = _Invocation(template)
        self._invocations.append(invocation)
        if insert is not None:
            self._inserts.append(insert)
        self._buffers.append([])
        try:
            template.render(self)
        finally:
            output = "".join(self._buffers.pop())
            if insert is not None:
                self._inserts.pop()
            self._invocations.pop()
            self._scopes = saved

        if invocation.decorator is None:
            self.write(output)
        else:
            self.render_template(invocation.decorator, insert=lambda: self.write(output))


# ============================================================================
# Renderer
# ============================================================================

@dataclass
class RenderResult:
    text: str
    title: Optional[str] = None


class TemplateRenderer:
    """
    Render templates resolved through a TemplateCache.

    Args:
        cache: Template cache
        registry: Tag handlers
        autoescape: HTML-escape printed expression values
    """

    def __init__(self, cache: "TemplateCache", registry: TagRegistry, autoescape: bool = False):
        self.cache = cache
        self.registry = registry
        self.autoescape = autoescape

    def load(self, path: TemplatePath) -> CompiledTemplate:
        return self.cache.get(path)

    def tag_handler(self, name: str) -> Optional[TagHandler]:
        return self.registry.resolve(name)

    def render(self, path: Union[str, TemplatePath], parameters: Optional[Mapping[str, Any]] = None) -> RenderResult:
        """
        Render a template to text.

        Raises:
            TemplateNotFoundFault: If the template does not exist
            TemplateCompilationFault: If the template does not compile
            TemplateRenderFault: If rendering fails
        """
        if isinstance(path, str):
            path = TemplatePath.parse(path)
        frame = RenderFrame(self, parameters)
        frame.render_template(path.as_absolute())
        return RenderResult(frame.result(), frame.title)


# ============================================================================
# Template descriptor
# ============================================================================

class Template:
    """
    Handle on a template, declared as a controller class attribute.

    The application binds it to its renderer at startup; the path is also
    a compilation root, so the template is checked before the first request.
    """

    def __init__(self, path: str):
        self.path = TemplatePath.parse(path).as_absolute()
        self._renderer: Optional[TemplateRenderer] = None

    def bind(self, renderer: TemplateRenderer) -> None:
        self._renderer = renderer

    @property
    def bound(self) -> bool:
        return self._renderer is not None

    def render(self, parameters: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Content:
        """Render with status 200."""
        return self._content(200, parameters, kwargs)

    def ok(self, parameters: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Content:
        return self._content(200, parameters, kwargs)

    def not_found(self, parameters: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Content:
        return self._content(404, parameters, kwargs)

    def _content(self, code: int, parameters: Optional[Mapping[str, Any]], kwargs: Dict[str, Any]) -> Content:
        if self._renderer is None:
            raise TemplateRenderFault(str(self.path), "template is not bound to an application")
        variables = dict(parameters or {})
        variables.update(kwargs)
        result = self._renderer.render(self.path, variables)
        content = Content(ChunkBuffer.of(result.text), code=code).with_mime_type("text/html")
        if result.title is not None:
            content = content.with_title(result.title)
        return content

    def __repr__(self) -> str:
        return f"Template({str(self.path)!r})"
