"""
Config system - layered configuration with a typed view.

Merge order (later overrides earlier):
1. Defaults
2. YAML file (``ardea.yaml`` in the working directory, or explicit paths)
3. ``.env`` file
4. Environment variables (``ARDEA_`` prefix, ``__`` separates nesting)
5. Manual overrides

    config = ConfigLoader.load(overrides={"run_mode": "dev"}).typed()
    config.templates.root
"""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import yaml
from dotenv import dotenv_values

from .faults import ConfigInvalidFault
from .request import RunMode


DEFAULT_CONFIG_FILE = "ardea.yaml"

DEFAULTS: Dict[str, Any] = {
    "name": "ardea",
    "run_mode": RunMode.PROD.value,
    "verbose_errors": None,
    "request_encoding": "UTF-8",
    "templates": {
        "root": "templates",
        "output": None,
        "autoescape": False,
    },
    "tags": {
        "handlers": {},
        "libraries": [],
    },
}


# ============================================================================
# Typed view
# ============================================================================

@dataclass
class TemplatesConfig:
    root: Path = Path("templates")
    output: Optional[Path] = None
    autoescape: bool = False


@dataclass
class TagsConfig:
    handlers: Dict[str, str] = field(default_factory=dict)
    libraries: List[str] = field(default_factory=list)


@dataclass
class ArdeaConfig:
    """
    Typed application configuration.

    ``verbose_errors`` left to None follows the run mode: on in dev and
    live, off in prod.
    """

    name: str = "ardea"
    run_mode: RunMode = RunMode.PROD
    verbose_errors: Optional[bool] = None
    request_encoding: str = "UTF-8"
    templates: TemplatesConfig = field(default_factory=TemplatesConfig)
    tags: TagsConfig = field(default_factory=TagsConfig)

    @property
    def verbose(self) -> bool:
        if self.verbose_errors is None:
            return self.run_mode.verbose_errors
        return self.verbose_errors

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ArdeaConfig":
        """
        Validate raw configuration data.

        Raises:
            ConfigInvalidFault: On a value of the wrong type or an unknown run mode
        """
        merged = copy.deepcopy(DEFAULTS)
        _merge_dict(merged, dict(data))

        try:
            run_mode = RunMode(str(merged["run_mode"]).lower())
        except ValueError:
            choices = ", ".join(m.value for m in RunMode)
            raise ConfigInvalidFault("run_mode", f"'{merged['run_mode']}' is not one of {choices}")

        templates = merged["templates"]
        tags = merged["tags"]
        if not isinstance(templates, Mapping):
            raise ConfigInvalidFault("templates", "expected a mapping")
        if not isinstance(tags, Mapping):
            raise ConfigInvalidFault("tags", "expected a mapping")

        handlers = tags.get("handlers") or {}
        if not isinstance(handlers, Mapping) or not all(isinstance(v, str) for v in handlers.values()):
            raise ConfigInvalidFault("tags.handlers", "expected a mapping of tag name to 'module:attr'")
        libraries = tags.get("libraries") or []
        if isinstance(libraries, str):
            libraries = [name.strip() for name in libraries.split(",") if name.strip()]
        if not isinstance(libraries, Sequence) or not all(isinstance(v, str) for v in libraries):
            raise ConfigInvalidFault("tags.libraries", "expected a list of module names")

        encoding = merged["request_encoding"]
        try:
            "".encode(str(encoding))
        except LookupError:
            raise ConfigInvalidFault("request_encoding", f"unknown encoding '{encoding}'")

        output = templates.get("output")
        return cls(
            name=str(merged["name"]),
            run_mode=run_mode,
            verbose_errors=_optional_bool("verbose_errors", merged["verbose_errors"]),
            request_encoding=str(encoding),
            templates=TemplatesConfig(
                root=Path(templates.get("root") or "templates"),
                output=Path(output) if output else None,
                autoescape=bool(_optional_bool("templates.autoescape", templates.get("autoescape"))),
            ),
            tags=TagsConfig(handlers=dict(handlers), libraries=list(libraries)),
        )


def _optional_bool(key: str, value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.lower() in ("false", "no", "0", "off"):
        return False
    raise ConfigInvalidFault(key, f"expected a boolean, got {value!r}")


def _merge_dict(target: dict, source: Mapping[str, Any]) -> None:
    """Deep merge source into target."""
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, Mapping):
            _merge_dict(target[key], value)
        else:
            target[key] = value


# ============================================================================
# Loader
# ============================================================================

class ConfigLoader:
    """
    Loads and merges configuration from every source.

    Args:
        env_prefix: Prefix of the environment variables to read
    """

    def __init__(self, env_prefix: str = "ARDEA_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    @classmethod
    def load(
        cls,
        paths: Optional[Sequence[Union[str, Path]]] = None,
        env_prefix: str = "ARDEA_",
        env_file: Optional[Union[str, Path]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration with the merge order described above.

        Args:
            paths: YAML files, ``ardea.yaml`` when present and none given
            env_prefix: Prefix for environment variables
            env_file: Path to a .env file
            overrides: Manual overrides (highest precedence)
            environ: Environment to read, ``os.environ`` by default
        """
        loader = cls(env_prefix=env_prefix)

        if paths is None and Path(DEFAULT_CONFIG_FILE).exists():
            paths = [DEFAULT_CONFIG_FILE]
        for path in paths or ():
            loader._load_yaml_file(Path(path))

        if env_file:
            loader._load_env_file(Path(env_file))

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            _merge_dict(loader.config_data, overrides)

        return loader

    def _load_yaml_file(self, path: Path) -> None:
        """
        Raises:
            ConfigInvalidFault: If the file is missing or not a YAML mapping
        """
        if not path.exists():
            raise ConfigInvalidFault(str(path), "configuration file not found")
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigInvalidFault(str(path), f"invalid YAML: {e}") from e
        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigInvalidFault(str(path), "expected a mapping at the top level")
        _merge_dict(self.config_data, data)

    def _load_env_file(self, path: Path) -> None:
        """Load prefixed keys from a .env file."""
        if not path.exists():
            return
        for key, value in dotenv_values(path).items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set_nested(key, value)

    def _load_from_env(self, environ: Mapping[str, str]) -> None:
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str) -> None:
        """Convert ARDEA_TEMPLATES__ROOT to config_data["templates"]["root"]."""
        parts = key[len(self.env_prefix):].lower().split("__")
        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False
        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass
        return value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.config_data)

    def typed(self) -> ArdeaConfig:
        """
        Raises:
            ConfigInvalidFault: If a value is invalid
        """
        return ArdeaConfig.from_dict(self.config_data)
