"""
Tag Registry - explicit table of tag handlers.

Handlers come from three places, later ones overriding earlier ones:

1. Built-in tags (include, decorate, insert, title, param)
2. Simple tags, templates under ``tags/`` in the template root
3. Configuration: ``tags.handlers`` maps a name to a ``module:attr`` import
   path, ``tags.libraries`` lists modules exposing a ``TAGS`` dict or
   packages shipping templates and simple tags

Entries are factories; a handler is instantiated on first resolution and
then reused.
"""

from __future__ import annotations

import importlib
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ...faults import ConfigInvalidFault
from ..loader import PackageLoader, package_templates
from .base import TagHandler
from .builtin import BUILTIN_TAGS
from .simple import SimpleTagHandler, discover_simple_tags


logger = logging.getLogger("ardea.templates.tags")

TagFactory = Callable[[], TagHandler]


def import_object(path: str) -> Any:
    """
    Import ``module:attr`` (or ``module.attr``).

    Raises:
        ImportError: If the module or the attribute cannot be found
    """
    if ":" in path:
        module_path, attr = path.split(":", 1)
    else:
        module_path, attr = path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    if not hasattr(module, attr):
        raise ImportError(f"'{attr}' not found in module '{module_path}'")
    return getattr(module, attr)


class TagRegistry:
    """
    Name to tag handler table.

    Example:
        registry = TagRegistry.with_builtins()
        registry.register("box", BoxTag)
        registry.resolve("box")
    """

    def __init__(self):
        self._factories: Dict[str, TagFactory] = {}
        self._handlers: Dict[str, TagHandler] = {}
        self._lock = threading.Lock()

    @classmethod
    def with_builtins(cls) -> "TagRegistry":
        registry = cls()
        for name, factory in BUILTIN_TAGS.items():
            registry.register(name, factory)
        return registry

    def register(self, name: str, handler: Union[TagHandler, TagFactory]) -> None:
        """Register a handler instance or a zero-argument factory."""
        if isinstance(handler, TagHandler):
            instance = handler
            factory: TagFactory = lambda: instance
        elif callable(handler):
            factory = handler
        else:
            raise TypeError(f"Tag '{name}' must be a TagHandler or a factory, not {type(handler).__name__}")
        with self._lock:
            self._factories[name] = factory
            self._handlers.pop(name, None)
        logger.debug("Registered tag '%s'", name)

    def register_simple_tags(self, template_names: Iterable[str]) -> List[str]:
        """Register a SimpleTagHandler for every template under ``tags/``."""
        names = []
        for name, path in discover_simple_tags(template_names):
            self.register(name, SimpleTagHandler(name, path))
            names.append(name)
        return names

    def register_handlers(self, handlers: Mapping[str, str]) -> None:
        """
        Register handlers from ``{name: "module:attr"}`` import paths.

        Raises:
            ConfigInvalidFault: If an import path cannot be loaded
        """
        for name, path in handlers.items():
            try:
                self.register(name, import_object(path))
            except (ImportError, TypeError, ValueError) as e:
                raise ConfigInvalidFault(f"tags.handlers.{name}", str(e)) from e

    def register_libraries(self, libraries: Sequence[str]) -> List[PackageLoader]:
        """
        Register every tag of reusable tag libraries.

        A library is a module with a ``TAGS`` mapping of name to handler, a
        package shipping a ``templates/`` folder, or both. Templates under the
        library ``tags/`` folder become simple tags.

        Returns:
            Loaders over the template folders of the libraries, in order

        Raises:
            ConfigInvalidFault: If a library cannot be loaded
        """
        loaders = []
        for library in libraries:
            try:
                module = importlib.import_module(library)
            except ImportError as e:
                raise ConfigInvalidFault("tags.libraries", f"cannot import '{library}': {e}") from e
            tags = getattr(module, "TAGS", None)
            loader = PackageLoader(library) if package_templates(module) is not None else None
            if tags is None and loader is None:
                raise ConfigInvalidFault("tags.libraries", f"'{library}' has no TAGS mapping nor templates folder")
            if tags is not None and not isinstance(tags, Mapping):
                raise ConfigInvalidFault("tags.libraries", f"'{library}' TAGS is not a mapping")
            simple: List[str] = []
            if loader is not None:
                simple = self.register_simple_tags(loader.list_templates())
                loaders.append(loader)
            for name, handler in (tags or {}).items():
                self.register(name, handler)
            logger.info("Loaded tag library '%s' (%d tags)", library, len(simple) + len(tags or {}))
        return loaders

    def resolve(self, name: str) -> Optional[TagHandler]:
        """Return the handler for ``name``, or None when no tag has that name."""
        handler = self._handlers.get(name)
        if handler is not None:
            return handler
        with self._lock:
            handler = self._handlers.get(name)
            if handler is None:
                factory = self._factories.get(name)
                if factory is None:
                    return None
                handler = factory()
                self._handlers[name] = handler
            return handler

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)
