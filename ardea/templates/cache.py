"""
Template Cache - process-wide, versioned store of template models and
compiled templates.

- Lookups of already compiled templates take no lock.
- Loads and compilations are single-flight per path: one thread does the
  work, concurrent requesters wait on the same Future.
- A template whose source timestamp changed is reloaded as a new model
  with ``version + 1``; every compiled template that depends on it,
  directly or transitively, is dropped.
- In ``RunMode.LIVE`` compiled templates are checked against the source
  timestamps on every lookup. Other modes trust the compiled templates.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from concurrent.futures import Future
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, TypeVar, Union

import jinja2

from ..faults import TemplateCompilationFault, TemplateNotFoundFault
from ..request import RunMode
from .compiler import CompilationResult, EmitContext, EmitPhase, MemoryEmitContext, ProcessPhase, TemplateCompiler
from .models import TemplateModel
from .paths import TemplatePath
from .runtime import CompiledTemplate, load_module
from .tags import TagRegistry


logger = logging.getLogger("ardea.templates.cache")

T = TypeVar("T")


class TemplateCache:
    """
    Args:
        loader: Template source loader
        registry: Tag handlers
        run_mode: Deployment mode
        environment: Jinja2 environment for expressions
    """

    def __init__(
        self,
        loader: jinja2.BaseLoader,
        registry: TagRegistry,
        *,
        run_mode: RunMode = RunMode.PROD,
        environment: Optional[jinja2.Environment] = None,
    ):
        self.compiler = TemplateCompiler(loader, registry, environment)
        self.context = self.compiler.context
        self.environment = self.compiler.environment
        self.run_mode = run_mode
        self.compilations: Counter = Counter()
        self._lock = threading.Lock()
        self._models: Dict[str, TemplateModel] = {}
        self._compiled: Dict[str, CompiledTemplate] = {}
        self._loading: Dict[str, Future] = {}
        self._compiling: Dict[str, Future] = {}

    # ========================================================================
    # Lookups
    # ========================================================================

    def model(self, path: Union[str, TemplatePath]) -> Optional[TemplateModel]:
        """The current model of a template, without loading anything."""
        return self._models.get(str(self._absolute(path)))

    def models(self) -> Dict[str, TemplateModel]:
        with self._lock:
            return dict(self._models)

    def resolve(self, path: Union[str, TemplatePath]) -> TemplateModel:
        """
        Return the model of a template, reloading it when its source changed.

        Resolving an unchanged template returns the identical model.

        Raises:
            TemplateNotFoundFault: If the template does not exist
            TemplateCompilationFault: If the template or a dependency is invalid
        """
        absolute = self._absolute(path)
        model = self._models.get(str(absolute))
        if model is not None and not self._changed(model):
            return model
        return self._single_flight(self._loading, str(absolute), lambda: self._load(absolute))

    def get(self, path: Union[str, TemplatePath]) -> CompiledTemplate:
        """
        Return the compiled template, compiling it on first use.

        Raises:
            TemplateNotFoundFault: If the template does not exist
            TemplateCompilationFault: If the template or a dependency is invalid
        """
        absolute = self._absolute(path)
        key = str(absolute)
        compiled = self._compiled.get(key)
        if compiled is not None and not self._needs_check(key):
            return compiled
        return self._single_flight(self._compiling, key, lambda: self._compile(absolute))

    def compile_all(
        self,
        roots: Optional[Iterable[Union[str, TemplatePath]]] = None,
        emit_context: Optional[EmitContext] = None,
    ) -> CompilationResult:
        """
        Compile a whole template set and install the result.

        Raises:
            TemplateCompilationFault: If any template is invalid
        """
        result = self.compiler.compile(roots, previous=self.models(), emit_context=emit_context)
        self._adopt(result.models.values())
        with self._lock:
            for key, source in result.sources.items():
                self._compiled[key] = load_module(self._models[key], source, self.environment)
                self.compilations[key] += 1
        return result

    def clear(self) -> None:
        with self._lock:
            self._models.clear()
            self._compiled.clear()

    # ========================================================================
    # Loading and compiling
    # ========================================================================

    def _absolute(self, path: Union[str, TemplatePath]) -> TemplatePath:
        if isinstance(path, str):
            path = TemplatePath.parse(path)
        return path.as_absolute()

    def _changed(self, model: TemplateModel) -> bool:
        return self.context.last_modified(model.path) != model.last_modified

    def _needs_check(self, key: str) -> bool:
        if self.run_mode is not RunMode.LIVE:
            return False
        return any(self._changed(model) for model in self._closure(key))

    def _closure(self, key: str) -> List[TemplateModel]:
        """The model of ``key`` and of everything it depends on."""
        seen: Set[str] = set()
        stack = [key]
        models = []
        while stack:
            current = stack.pop()
            model = self._models.get(current)
            if current in seen or model is None:
                continue
            seen.add(current)
            models.append(model)
            stack.extend(str(d) for d in model.dependencies)
        return models

    def _process(self, path: TemplatePath) -> None:
        if self.context.last_modified(path) is None:
            raise TemplateNotFoundFault(str(path))
        result = ProcessPhase(self.context, self.environment, self.models()).process([path])
        if result.errors:
            raise TemplateCompilationFault(result.errors)
        self._adopt(result.models.values())

    def _load(self, path: TemplatePath) -> TemplateModel:
        model = self._models.get(str(path))
        if model is not None and not self._changed(model):
            return model
        self._process(path)
        return self._models[str(path)]

    def _compile(self, path: TemplatePath) -> CompiledTemplate:
        key = str(path)
        compiled = self._compiled.get(key)
        if compiled is not None and not self._needs_check(key):
            return compiled
        self._process(path)
        model = self._models[key]
        emit = EmitPhase(MemoryEmitContext(self.context))
        errors = emit.emit([model])
        if errors:
            raise TemplateCompilationFault(errors)
        compiled = load_module(model, emit.sources[key], self.environment)
        with self._lock:
            self._compiled[key] = compiled
            self.compilations[key] += 1
        logger.debug("Compiled %s version %d", key, model.version)
        return compiled

    def _adopt(self, models: Iterable[TemplateModel]) -> None:
        with self._lock:
            for model in models:
                current = self._models.get(model.key)
                if current is model:
                    continue
                if current is not None and current.last_modified == model.last_modified:
                    continue
                self._models[model.key] = model
                if current is not None:
                    self._invalidate(model.key)

    def _dependents(self, key: str) -> Set[str]:
        """Every template depending on ``key``, transitively."""
        reverse: Dict[str, List[str]] = {}
        for name, model in self._models.items():
            for dependency in model.dependencies:
                reverse.setdefault(str(dependency), []).append(name)
        found: Set[str] = set()
        stack = [key]
        while stack:
            for dependent in reverse.get(stack.pop(), ()):
                if dependent not in found:
                    found.add(dependent)
                    stack.append(dependent)
        return found

    def _invalidate(self, key: str) -> None:
        dropped = [k for k in {key} | self._dependents(key) if self._compiled.pop(k, None) is not None]
        logger.debug("Template %s changed, invalidated %s", key, sorted(dropped) or "nothing")

    def _single_flight(self, inflight: Dict[str, Future], key: str, work: Callable[[], T]) -> T:
        with self._lock:
            future = inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                inflight[key] = future
        if not owner:
            return future.result()
        try:
            result = work()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                inflight.pop(key, None)
