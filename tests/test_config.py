"""
Layered configuration (config.py).
"""

from pathlib import Path

import pytest

from ardea.config import ArdeaConfig, ConfigLoader
from ardea.faults import ConfigInvalidFault
from ardea.request import RunMode


class TestTypedConfig:

    def test_defaults(self):
        config = ConfigLoader.load(paths=[], environ={}).typed()
        assert config.name == "ardea"
        assert config.run_mode is RunMode.PROD
        assert config.verbose is False
        assert config.request_encoding == "UTF-8"
        assert config.templates.root == Path("templates")
        assert config.templates.output is None
        assert config.tags.handlers == {}
        assert config.tags.libraries == []

    def test_verbose_follows_run_mode(self):
        assert ArdeaConfig(run_mode=RunMode.DEV).verbose is True
        assert ArdeaConfig(run_mode=RunMode.LIVE).verbose is True
        assert ArdeaConfig(run_mode=RunMode.DEV, verbose_errors=False).verbose is False

    def test_invalid_run_mode(self):
        with pytest.raises(ConfigInvalidFault) as info:
            ArdeaConfig.from_dict({"run_mode": "fast"})
        assert info.value.code == "CONFIG_INVALID"

    def test_run_mode_case_insensitive(self):
        assert ArdeaConfig.from_dict({"run_mode": "LIVE"}).run_mode is RunMode.LIVE

    def test_invalid_boolean(self):
        with pytest.raises(ConfigInvalidFault):
            ArdeaConfig.from_dict({"verbose_errors": "sometimes"})

    def test_invalid_encoding(self):
        with pytest.raises(ConfigInvalidFault):
            ArdeaConfig.from_dict({"request_encoding": "no-such-charset"})

    def test_invalid_handlers(self):
        with pytest.raises(ConfigInvalidFault):
            ArdeaConfig.from_dict({"tags": {"handlers": {"box": 3}}})

    def test_libraries_from_comma_list(self):
        config = ArdeaConfig.from_dict({"tags": {"libraries": "a.tags, b.tags"}})
        assert config.tags.libraries == ["a.tags", "b.tags"]


class TestConfigLoader:

    def test_yaml(self, tmp_path):
        path = tmp_path / "ardea.yaml"
        path.write_text(
            "name: blog\n"
            "run_mode: dev\n"
            "templates:\n"
            "  root: views\n"
            "  autoescape: true\n"
        )
        config = ConfigLoader.load(paths=[path], environ={}).typed()
        assert config.name == "blog"
        assert config.run_mode is RunMode.DEV
        assert config.templates.root == Path("views")
        assert config.templates.autoescape is True
        assert config.templates.output is None

    def test_missing_yaml(self, tmp_path):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(paths=[tmp_path / "absent.yaml"], environ={})

    def test_yaml_must_be_mapping(self, tmp_path):
        path = tmp_path / "ardea.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(paths=[path], environ={})

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("ARDEA_RUN_MODE=live\nOTHER=1\nARDEA_TEMPLATES__ROOT=site\n")
        loader = ConfigLoader.load(paths=[], env_file=env, environ={})
        assert loader.get("run_mode") == "live"
        assert loader.get("templates.root") == "site"
        assert loader.get("other") is None

    def test_environment(self):
        environ = {
            "ARDEA_VERBOSE_ERRORS": "true",
            "ARDEA_TAGS__HANDLERS": '{"box": "pkg.tags:Box"}',
            "HOME": "/root",
        }
        config = ConfigLoader.load(paths=[], environ=environ).typed()
        assert config.verbose_errors is True
        assert config.tags.handlers == {"box": "pkg.tags:Box"}

    def test_precedence(self, tmp_path):
        path = tmp_path / "ardea.yaml"
        path.write_text("run_mode: dev\nname: yaml\n")
        env = tmp_path / ".env"
        env.write_text("ARDEA_NAME=dotenv\n")
        loader = ConfigLoader.load(
            paths=[path],
            env_file=env,
            environ={"ARDEA_RUN_MODE": "live"},
            overrides={"templates": {"output": "build"}},
        )
        config = loader.typed()
        assert config.name == "dotenv"
        assert config.run_mode is RunMode.LIVE
        assert config.templates.output == Path("build")
        assert config.templates.root == Path("templates")

    def test_custom_prefix(self):
        loader = ConfigLoader.load(paths=[], env_prefix="BLOG_", environ={"BLOG_NAME": "blog"})
        assert loader.get("name") == "blog"

    def test_to_dict_is_a_copy(self):
        loader = ConfigLoader.load(paths=[], environ={})
        data = loader.to_dict()
        data["templates"]["root"] = "elsewhere"
        assert loader.get("templates.root") == "templates"
