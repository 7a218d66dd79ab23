"""
Configuration loader for dotsmith.

This module provides configuration management with:
- Multiple configuration sources (JSON, YAML, TOML files, dicts, env vars)
- Schema validation with pydantic
- Configuration merging by priority
- Defaults management
"""

import os
import json
import yaml
import toml
from pathlib import Path
from typing import Optional, Dict, Any, List, Union
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

from .logging import get_logger
from .errors import ConfigurationError
from .fs import atomic_write, ensure_private_dir
from .paths import config_dir as default_config_dir


logger = get_logger("dotsmith.config")

ENV_PREFIX = "DOTSMITH_"
CONFIG_FILE_NAME = "config.toml"


class ConfigSource(BaseModel):
    """Configuration source definition."""
    path: Optional[Path] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    source_type: str = "dict"

    model_config = ConfigDict(arbitrary_types_allowed=True)


class StorageConfig(BaseModel):
    """Snapshot database configuration."""
    db_name: str = "snapshots.db"
    backup_dir_name: str = "backups"
    busy_timeout: float = 5.0
    journal_mode: str = "WAL"
    synchronous: str = "NORMAL"

    @field_validator('journal_mode', 'synchronous')
    @classmethod
    def upper_pragma(cls, v):
        """Pragma values are case-insensitive; normalize them."""
        return v.upper()

    @field_validator('busy_timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Timeout must be non-negative."""
        if v < 0:
            raise ValueError("busy_timeout must be >= 0")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "text"
    directory: Optional[Path] = None
    max_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        """Validate log file format."""
        if v not in ("text", "json"):
            raise ValueError(f"Invalid log format: {v}")
        return v

    @field_validator('directory', mode='before')
    @classmethod
    def expand_directory(cls, v):
        """Allow ~ in the log directory."""
        if v is None:
            return v
        return Path(str(v)).expanduser()


class DiffConfig(BaseModel):
    """Diff engine configuration."""
    context_radius: int = Field(default=3, ge=0)


class HistoryConfig(BaseModel):
    """History listing configuration."""
    default_limit: int = Field(default=20, ge=1)
    view_limit: int = Field(default=50, ge=1)


class DotsmithConfig(BaseModel):
    """Main dotsmith configuration."""
    config_dir: Path = Field(default_factory=default_config_dir)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    diff: DiffConfig = Field(default_factory=DiffConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        validate_assignment=True
    )

    @field_validator('config_dir', mode='before')
    @classmethod
    def expand_config_dir(cls, v):
        """Allow ~ in configured directories."""
        return Path(str(v)).expanduser()

    @property
    def db_path(self) -> Path:
        """Location of the snapshot database."""
        return self.config_dir / self.storage.db_name

    @property
    def backup_dir(self) -> Path:
        """Directory receiving pre-rollback backups."""
        return self.config_dir / self.storage.backup_dir_name

    @property
    def log_dir(self) -> Path:
        """Directory for log files."""
        return self.logging.directory or self.config_dir / "logs"


class ConfigLoader:
    """Configuration loader with multiple source support."""

    def __init__(self, env_prefix: str = ENV_PREFIX):
        """Initialize configuration loader."""
        self._sources: List[ConfigSource] = []
        self._config: Optional[DotsmithConfig] = None
        self.env_prefix = env_prefix

    def add_source(
        self,
        source: Union[str, Path, Dict[str, Any]],
        priority: int = 0,
        source_type: Optional[str] = None
    ) -> None:
        """
        Add configuration source.

        Args:
            source: Configuration source (file path or dict)
            priority: Source priority (higher wins)
            source_type: Source type (auto-detected if None)
        """
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not source_type:
                source_type = self._detect_source_type(path)

            self._sources.append(ConfigSource(
                path=path,
                priority=priority,
                source_type=source_type
            ))
        else:
            self._sources.append(ConfigSource(
                data=source,
                priority=priority,
                source_type="dict"
            ))

        self._sources.sort(key=lambda s: s.priority)

    def _detect_source_type(self, path: Path) -> str:
        """Detect configuration file type."""
        suffix = path.suffix.lower()
        if suffix == ".json":
            return "json"
        elif suffix in (".yaml", ".yml"):
            return "yaml"
        elif suffix == ".toml":
            return "toml"
        else:
            raise ConfigurationError(f"Unknown config file type: {suffix}")

    def load(self) -> DotsmithConfig:
        """
        Load configuration from all sources.

        Sources are merged from lowest to highest priority, environment
        variables are applied last.

        Returns:
            Merged configuration
        """
        merged_data: Dict[str, Any] = {}

        for source in self._sources:
            data = self._load_source(source)
            merged_data = self._deep_merge(merged_data, data)

        env_data = self._load_env_vars()
        merged_data = self._deep_merge(merged_data, env_data)

        try:
            self._config = DotsmithConfig(**merged_data)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                errors.append(f"{field}: {error['msg']}")

            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}"
            ) from e

        logger.debug(
            "configuration_loaded",
            sources=len(self._sources),
            config_dir=str(self._config.config_dir),
        )
        return self._config

    def _load_source(self, source: ConfigSource) -> Dict[str, Any]:
        """Load data from a configuration source."""
        if source.path is None:
            return source.data

        if not source.path.exists():
            logger.debug("config_file_not_found", path=str(source.path))
            return {}

        try:
            content = source.path.read_text(encoding="utf-8")
            if source.source_type == "json":
                data = json.loads(content)
            elif source.source_type == "yaml":
                data = yaml.safe_load(content)
            elif source.source_type == "toml":
                data = toml.loads(content)
            else:
                raise ConfigurationError(f"Unknown source type: {source.source_type}")
        except (OSError, ValueError, yaml.YAMLError) as e:
            # json.JSONDecodeError and toml.TomlDecodeError are ValueErrors
            raise ConfigurationError(
                f"Failed to read configuration file {source.path}: {e}",
                cause=e
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file {source.path} must contain a mapping"
            )
        return data

    def _load_env_vars(self) -> Dict[str, Any]:
        """Load configuration from environment variables.

        ``DOTSMITH_CONFIG_DIR`` maps to ``config_dir``; nested keys use a
        double underscore, e.g. ``DOTSMITH_STORAGE__BUSY_TIMEOUT``. Values stay
        strings; the models coerce them to their field types.
        """
        result: Dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.startswith(self.env_prefix):
                continue

            parts = key[len(self.env_prefix):].lower().split("__")
            if not all(parts):
                continue

            current = result
            for part in parts[:-1]:
                current = current.setdefault(part, {})
                if not isinstance(current, dict):
                    break
            else:
                current[parts[-1]] = value

        return result

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get_config(self) -> DotsmithConfig:
        """Get current configuration."""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._config


def load_config(
    config_paths: Optional[List[Union[str, Path]]] = None,
    extra_config: Optional[Dict[str, Any]] = None
) -> DotsmithConfig:
    """
    Load configuration from standard locations.

    Args:
        config_paths: Additional configuration paths
        extra_config: Extra configuration to merge (highest file priority)

    Returns:
        Loaded configuration
    """
    loader = ConfigLoader()

    # config.toml inside the config directory the environment points at
    base_dir = default_config_dir()
    if extra_config and extra_config.get("config_dir"):
        base_dir = Path(str(extra_config["config_dir"])).expanduser()
    loader.add_source(base_dir / CONFIG_FILE_NAME, priority=10)

    if config_paths:
        for i, path in enumerate(config_paths):
            loader.add_source(path, priority=20 + i)

    if extra_config:
        loader.add_source(extra_config, priority=100)

    return loader.load()


def init_config_dir(config: DotsmithConfig) -> Path:
    """Create the config directory (owner-only) and a default config.toml.

    Existing files are left untouched.

    Returns:
        The config directory
    """
    directory = ensure_private_dir(config.config_dir)
    config_file = directory / CONFIG_FILE_NAME
    if not config_file.exists():
        defaults = config.model_dump(mode="json", exclude={"config_dir"}, exclude_none=True)
        atomic_write(config_file, toml.dumps(defaults))
        logger.info("config_initialized", config_dir=str(directory))
    return directory


__all__ = [
    'DotsmithConfig',
    'StorageConfig',
    'LoggingConfig',
    'DiffConfig',
    'HistoryConfig',
    'ConfigLoader',
    'load_config',
    'init_config_dir',
]
