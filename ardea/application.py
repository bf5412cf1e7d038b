"""
Application - wires configuration, templates, tags and controllers.

    app = Application(ConfigLoader.load().typed(), controllers=[Home])
    app.start()                 # compiles every template, fails on any error
    app.serve(bridge)

Startup:
1. Build the tag registry: built-ins, simple tags found under ``tags/``,
   then the libraries and handlers named in configuration. Libraries
   shipping a ``templates/`` folder are mounted behind the application
   templates
2. Compile every template. Roots are the templates declared on controllers
   (declaration order) followed by the remaining templates (sorted)
3. Bind the controller ``Template`` descriptors to the renderer
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Sequence

import jinja2

from .config import ArdeaConfig, ConfigLoader
from .controller import ControllerFactory, ControllerRegistry, Dispatcher
from .bridge import Bridge
from .request import Interaction
from .response import Response
from .templates import (
    CompositeLoader,
    FileSystemEmitContext,
    TagRegistry,
    TemplateCache,
    TemplateLoader,
    TemplateRenderer,
)

if TYPE_CHECKING:
    from .asgi import ASGIBridgeApp


logger = logging.getLogger("ardea.application")


class Application:
    """
    An Ardea application.

    Args:
        config: Typed configuration, defaults when None
        controllers: Controller classes
        loader: Template loader, a TemplateLoader over ``templates.root`` when None
        factory: Controller instantiation
    """

    def __init__(
        self,
        config: Optional[ArdeaConfig] = None,
        controllers: Iterable[type] = (),
        *,
        loader: Optional[jinja2.BaseLoader] = None,
        factory: Optional[ControllerFactory] = None,
    ):
        self.config = config or ArdeaConfig()
        self.registry = ControllerRegistry(controllers)
        self.loader = CompositeLoader([loader or TemplateLoader(self.config.templates.root)])
        self.tags = TagRegistry.with_builtins()
        self.templates = TemplateCache(self.loader, self.tags, run_mode=self.config.run_mode)
        self.renderer = TemplateRenderer(self.templates, self.tags, autoescape=self.config.templates.autoescape)
        self.dispatcher = Dispatcher(self.registry, factory=factory, verbose_errors=self.config.verbose)
        self.started = False
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        controllers: Iterable[type] = (),
        *,
        paths: Optional[Sequence[str]] = None,
        env_file: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> "Application":
        """Load configuration with ConfigLoader and build the application."""
        config = ConfigLoader.load(paths=paths, env_file=env_file, overrides=overrides).typed()
        return cls(config, controllers, **kwargs)

    @property
    def name(self) -> str:
        return self.config.name

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> "Application":
        """
        Build tags, compile templates and bind template descriptors.

        Raises:
            TemplateCompilationFault: If any template fails to compile
            ConfigInvalidFault: If a configured tag cannot be loaded
        """
        if self.started:
            return self
        with self._lock:
            if not self.started:
                self._start()
        return self

    def _start(self) -> None:
        logger.info("Starting application '%s' (%s mode)", self.name, self.config.run_mode.value)

        simple = self.tags.register_simple_tags(self.loader.loaders[0].list_templates())
        self.loader.loaders[1:] = self.tags.register_libraries(self.config.tags.libraries)
        self.tags.register_handlers(self.config.tags.handlers)
        logger.debug("Tags: %s (simple: %s)", self.tags.names(), simple)

        emit_context = None
        if self.config.templates.output is not None:
            emit_context = FileSystemEmitContext(self.config.templates.output, self.tags, overwrite=True)
        result = self.templates.compile_all(self._roots(self.loader.list_templates()), emit_context=emit_context)

        for template in self.registry.templates():
            template.bind(self.renderer)

        self.started = True
        logger.info(
            "Application '%s' started: %d controller method(s), %d template(s)",
            self.name, len(self.registry), len(result.models),
        )

    def stop(self) -> None:
        self.templates.clear()
        self.started = False
        logger.info("Application '%s' stopped", self.name)

    def _roots(self, names: Sequence[str]) -> List[str]:
        roots: List[str] = []
        for template in self.registry.templates():
            if str(template.path) not in roots:
                roots.append(str(template.path))
        for name in sorted(names):
            absolute = "/" + name
            if absolute not in roots:
                roots.append(absolute)
        return roots

    # ========================================================================
    # Serving
    # ========================================================================

    def dispatch(self, interaction: Interaction, bridge: Optional[Bridge] = None) -> Response:
        self.start()
        return self.dispatcher.dispatch(interaction, bridge)

    def serve(self, bridge: Bridge) -> None:
        """Dispatch the bridge interaction and write the outcome to the bridge."""
        self.start()
        self.dispatcher.serve(bridge)

    def asgi(self) -> "ASGIBridgeApp":
        """ASGI application serving this application."""
        from .asgi import ASGIBridgeApp
        return ASGIBridgeApp(self)

    def __repr__(self) -> str:
        return f"Application(name={self.name!r}, run_mode={self.config.run_mode.value})"
