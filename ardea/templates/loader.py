"""
Template Loader - filesystem, package and in-memory template sources.

Every loader is a Jinja2 loader so it plugs into an Environment, and every
loader reports the source timestamp the cache uses for versioning:

    loader = TemplateLoader("app/templates")
    source, filename, uptodate = loader.get_source(env, "index.gtmpl")
    loader.last_modified("index.gtmpl")
"""

from __future__ import annotations

import importlib
import os
import threading
import time
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from jinja2 import BaseLoader, ChoiceLoader, TemplateNotFound

from .dialects import dialect_for
from .paths import TemplatePath


SourceTuple = Tuple[str, Optional[str], Optional[Callable[[], bool]]]
TEMPLATES_FOLDER = "templates"


def _canonical(template: Union[str, TemplatePath]) -> str:
    if isinstance(template, TemplatePath):
        return template.canonical
    return TemplatePath.parse(template).canonical


class TemplateLoader(BaseLoader):
    """
    Filesystem template loader rooted at one directory.

    Template names are canonical paths relative to the root
    (``layouts/main.gtmpl``); a leading slash is accepted.

    Args:
        root: Template root directory
        encoding: Source file encoding
    """

    def __init__(self, root: Union[str, Path], encoding: str = "utf-8"):
        self.root = Path(root)
        self.encoding = encoding

    def _file(self, template: Union[str, TemplatePath]) -> Path:
        try:
            name = _canonical(template)
        except ValueError:
            raise TemplateNotFound(str(template))
        return self.root.joinpath(*name.split("/"))

    def get_source(self, environment: Any, template: str) -> SourceTuple:
        """
        Load template source.

        Returns:
            Tuple of (source, filename, uptodate_func)

        Raises:
            TemplateNotFound: If template cannot be found
        """
        path = self._file(template)
        if not path.is_file():
            raise TemplateNotFound(str(template))
        mtime = path.stat().st_mtime
        source = path.read_text(encoding=self.encoding)

        def uptodate() -> bool:
            try:
                return path.stat().st_mtime == mtime
            except OSError:
                return False

        return source, str(path), uptodate

    def last_modified(self, template: Union[str, TemplatePath]) -> Optional[float]:
        """Source timestamp, or None when the template does not exist."""
        try:
            return self._file(template).stat().st_mtime
        except (OSError, TemplateNotFound):
            return None

    def list_templates(self) -> List[str]:
        """
        List every template with a known dialect.

        Returns:
            Sorted canonical template names
        """
        templates = set()
        if not self.root.exists():
            return []
        for root, dirs, files in os.walk(self.root):
            root_path = Path(root)
            for filename in files:
                relative = (root_path / filename).relative_to(self.root)
                if self._is_template_file(relative):
                    templates.add(relative.as_posix())
        return sorted(templates)

    @staticmethod
    def _is_template_file(relative: Path) -> bool:
        return dialect_for(TemplatePath(tuple(relative.parts))) is not None


class MemoryLoader(BaseLoader):
    """
    In-memory template loader, for tests and embedded templates.

    Each template carries its own timestamp; ``touch`` bumps it as an edit
    on disk would.

    Args:
        templates: Mapping of template name to source
    """

    def __init__(self, templates: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self._sources: Dict[str, str] = {}
        self._mtimes: Dict[str, float] = {}
        self._clock = time.time()
        for name, source in (templates or {}).items():
            self.put(name, source)

    def _tick(self) -> float:
        self._clock = max(self._clock + 1.0, time.time())
        return self._clock

    def put(self, template: str, source: str) -> None:
        """Add or replace a template, bumping its timestamp."""
        name = _canonical(template)
        with self._lock:
            self._sources[name] = source
            self._mtimes[name] = self._tick()

    def touch(self, template: str, source: Optional[str] = None) -> None:
        """Bump the timestamp of an existing template, optionally changing its source."""
        name = _canonical(template)
        with self._lock:
            if name not in self._sources:
                raise TemplateNotFound(template)
            if source is not None:
                self._sources[name] = source
            self._mtimes[name] = self._tick()

    def remove(self, template: str) -> None:
        name = _canonical(template)
        with self._lock:
            self._sources.pop(name, None)
            self._mtimes.pop(name, None)

    def get_source(self, environment: Any, template: str) -> SourceTuple:
        try:
            name = _canonical(template)
        except ValueError:
            raise TemplateNotFound(template)
        with self._lock:
            if name not in self._sources:
                raise TemplateNotFound(template)
            source = self._sources[name]
            mtime = self._mtimes[name]
        return source, None, lambda: self._mtimes.get(name) == mtime

    def last_modified(self, template: Union[str, TemplatePath]) -> Optional[float]:
        try:
            name = _canonical(template)
        except ValueError:
            return None
        return self._mtimes.get(name)

    def list_templates(self) -> List[str]:
        with self._lock:
            names = list(self._sources)
        return sorted(n for n in names if dialect_for(TemplatePath.parse(n)) is not None)


class PackageLoader(TemplateLoader):
    """
    Templates shipped inside an importable package, under ``templates/``.

    Reusable tag libraries use it to bring their own templates: layouts to
    decorate with, fragments to include and simple tags under ``tags/``.

    Args:
        package: Dotted package name
        folder: Template folder inside the package
        encoding: Source file encoding

    Raises:
        ImportError: If the package cannot be imported
        FileNotFoundError: If the package has no such folder
    """

    def __init__(self, package: str, folder: str = TEMPLATES_FOLDER, encoding: str = "utf-8"):
        root = package_templates(importlib.import_module(package), folder)
        if root is None:
            raise FileNotFoundError(f"Package '{package}' has no '{folder}' folder")
        super().__init__(root, encoding)
        self.package = package

    def __repr__(self) -> str:
        return f"PackageLoader({self.package!r}, root={str(self.root)!r})"


def package_templates(module: ModuleType, folder: str = TEMPLATES_FOLDER) -> Optional[Path]:
    """Template folder of a package, None for plain modules or packages without one."""
    for location in getattr(module, "__path__", None) or ():
        root = Path(location) / folder
        if root.is_dir():
            return root
    return None


class CompositeLoader(ChoiceLoader):
    """
    Chain of loaders, the first one holding a template wins.

    The application templates come first, then the templates of tag
    libraries, in configuration order.
    """

    def last_modified(self, template: Union[str, TemplatePath]) -> Optional[float]:
        for loader in self.loaders:
            mtime = loader.last_modified(template)
            if mtime is not None:
                return mtime
        return None
