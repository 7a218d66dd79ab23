"""
Tests for configuration loading.
"""

import json
import os
import stat
from pathlib import Path

import pytest
import toml
import yaml

from dotsmith.utils.config import (
    ConfigLoader,
    DotsmithConfig,
    init_config_dir,
    load_config,
)
from dotsmith.utils.errors import ConfigurationError

posix_only = pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")


class TestDefaults:
    """Test built-in defaults."""

    def test_default_values(self, home):
        config = DotsmithConfig()

        assert config.config_dir == home / ".config" / "dotsmith"
        assert config.db_path == config.config_dir / "snapshots.db"
        assert config.backup_dir == config.config_dir / "backups"
        assert config.log_dir == config.config_dir / "logs"
        assert config.diff.context_radius == 3
        assert config.history.default_limit == 20
        assert config.storage.journal_mode == "WAL"

    def test_config_dir_env(self, home, temp_dir, monkeypatch):
        monkeypatch.setenv("DOTSMITH_CONFIG_DIR", str(temp_dir / "custom"))
        assert DotsmithConfig().config_dir == temp_dir / "custom"

    def test_xdg_config_home(self, home, temp_dir, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "xdg"))
        assert DotsmithConfig().config_dir == temp_dir / "xdg" / "dotsmith"

    def test_tilde_config_dir(self, home):
        assert DotsmithConfig(config_dir="~/dots").config_dir == home / "dots"

    def test_invalid_level(self, home):
        with pytest.raises(ValueError):
            DotsmithConfig(logging={"level": "LOUD"})


class TestConfigLoader:
    """Test merging configuration sources."""

    def test_toml_source(self, home, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text(toml.dumps({"diff": {"context_radius": 5}}))

        loader = ConfigLoader()
        loader.add_source(path)

        assert loader.load().diff.context_radius == 5

    def test_yaml_and_json_sources(self, home, temp_dir):
        yaml_path = temp_dir / "config.yaml"
        yaml_path.write_text(yaml.safe_dump({"history": {"default_limit": 7}}))
        json_path = temp_dir / "config.json"
        json_path.write_text(json.dumps({"storage": {"busy_timeout": 1.5}}))

        loader = ConfigLoader()
        loader.add_source(yaml_path)
        loader.add_source(json_path)
        config = loader.load()

        assert config.history.default_limit == 7
        assert config.storage.busy_timeout == 1.5

    def test_higher_priority_wins(self, home):
        loader = ConfigLoader()
        loader.add_source({"diff": {"context_radius": 9}}, priority=50)
        loader.add_source({"diff": {"context_radius": 1}}, priority=10)

        assert loader.load().diff.context_radius == 9

    def test_nested_merge_keeps_siblings(self, home):
        loader = ConfigLoader()
        loader.add_source({"history": {"default_limit": 5, "view_limit": 10}}, priority=1)
        loader.add_source({"history": {"default_limit": 6}}, priority=2)

        history = loader.load().history

        assert (history.default_limit, history.view_limit) == (6, 10)

    def test_env_overrides_files(self, home, monkeypatch):
        monkeypatch.setenv("DOTSMITH_STORAGE__BUSY_TIMEOUT", "2.5")
        monkeypatch.setenv("DOTSMITH_LOGGING__LEVEL", "debug")

        loader = ConfigLoader()
        loader.add_source({"storage": {"busy_timeout": 10}}, priority=100)
        config = loader.load()

        assert config.storage.busy_timeout == 2.5
        assert config.logging.level == "DEBUG"

    def test_numeric_looking_env_paths_stay_paths(self, home, monkeypatch):
        monkeypatch.setenv("DOTSMITH_CONFIG_DIR", "2026")
        monkeypatch.setenv("DOTSMITH_LOGGING__DIRECTORY", "1.5")
        monkeypatch.setenv("DOTSMITH_STORAGE__DB_NAME", "2026")

        config = load_config()

        assert config.config_dir == Path("2026")
        assert config.logging.directory == Path("1.5")
        assert config.storage.db_name == "2026"

    def test_env_values_coerced_by_field_type(self, home, monkeypatch):
        monkeypatch.setenv("DOTSMITH_HISTORY__DEFAULT_LIMIT", "7")
        monkeypatch.setenv("DOTSMITH_STORAGE__BUSY_TIMEOUT", "3")

        config = ConfigLoader().load()

        assert config.history.default_limit == 7
        assert config.storage.busy_timeout == 3.0

    def test_invalid_env_value_is_configuration_error(self, home, monkeypatch):
        monkeypatch.setenv("DOTSMITH_HISTORY__DEFAULT_LIMIT", "many")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader().load()

        assert "history.default_limit" in str(exc_info.value)

    def test_numeric_config_dir_in_source(self, home):
        loader = ConfigLoader()
        loader.add_source({"config_dir": 2026})
        assert loader.load().config_dir == Path("2026")

    def test_missing_file_is_ignored(self, home, temp_dir):
        loader = ConfigLoader()
        loader.add_source(temp_dir / "absent.toml")
        assert loader.load().diff.context_radius == 3

    def test_malformed_file(self, home, temp_dir):
        path = temp_dir / "broken.toml"
        path.write_text("this is = = not toml")

        loader = ConfigLoader()
        loader.add_source(path)

        with pytest.raises(ConfigurationError):
            loader.load()

    def test_non_mapping_file(self, home, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n")

        loader = ConfigLoader()
        loader.add_source(path)

        with pytest.raises(ConfigurationError):
            loader.load()

    def test_unknown_extension(self, home, temp_dir):
        with pytest.raises(ConfigurationError):
            ConfigLoader().add_source(temp_dir / "config.ini")

    def test_validation_error_is_configuration_error(self, home):
        loader = ConfigLoader()
        loader.add_source({"diff": {"context_radius": -1}})

        with pytest.raises(ConfigurationError) as exc_info:
            loader.load()

        assert "diff.context_radius" in str(exc_info.value)

    def test_get_config_before_load(self):
        with pytest.raises(ConfigurationError):
            ConfigLoader().get_config()


class TestLoadConfig:
    """Test standard-location loading and initialization."""

    def test_reads_config_dir_file(self, config_dir):
        (config_dir / "config.toml").write_text(toml.dumps({"history": {"default_limit": 4}}))

        assert load_config().history.default_limit == 4

    def test_extra_config_has_priority(self, config_dir, temp_dir):
        (config_dir / "config.toml").write_text(toml.dumps({"history": {"default_limit": 4}}))
        extra = temp_dir / "extra.yaml"
        extra.write_text(yaml.safe_dump({"history": {"default_limit": 8}}))

        config = load_config([extra], {"diff": {"context_radius": 2}})

        assert config.history.default_limit == 8
        assert config.diff.context_radius == 2

    def test_init_config_dir(self, home, temp_dir):
        config = DotsmithConfig(config_dir=temp_dir / "fresh" / "dotsmith")

        directory = init_config_dir(config)

        assert directory.is_dir()
        written = toml.loads((directory / "config.toml").read_text())
        assert written["diff"]["context_radius"] == 3
        assert "config_dir" not in written

    def test_init_keeps_existing_file(self, config_dir, test_config):
        (config_dir / "config.toml").write_text("# mine\n")
        init_config_dir(test_config)
        assert (config_dir / "config.toml").read_text() == "# mine\n"

    @posix_only
    def test_init_creates_private_dir(self, home, temp_dir):
        config = DotsmithConfig(config_dir=temp_dir / "private")
        init_config_dir(config)
        assert stat.S_IMODE(config.config_dir.stat().st_mode) == 0o700

    def test_initialized_config_round_trips(self, home, temp_dir):
        config = DotsmithConfig(config_dir=temp_dir / "cfg")
        init_config_dir(config)

        reloaded = load_config(extra_config={"config_dir": str(config.config_dir)})

        assert reloaded.storage == config.storage
        assert reloaded.diff == config.diff
