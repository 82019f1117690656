"""
Config system - layered database configuration.

Merge precedence (later overrides earlier):
defaults < YAML/JSON file < .env file < environment variables < overrides

    loader = ConfigLoader.load(paths=["tessera.yaml"], env_file=".env")
    db = configure_from(loader)
    db.connect()
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .db.engine import Database, configure_database
from .faults.domains import ConfigInvalidFault

logger = logging.getLogger("tessera.config")


@dataclass
class DatabaseConfig:
    """Connection settings for one database alias."""

    url: str = "sqlite:///db.sqlite3"
    alias: str = "default"
    echo: bool = False
    connect_retries: int = 3
    connect_retry_delay: float = 0.5
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.url, str) or "://" not in self.url:
            raise ConfigInvalidFault(key="database.url", reason=f"not a database URL: {self.url!r}")
        if not isinstance(self.alias, str) or not self.alias:
            raise ConfigInvalidFault(key="database.alias", reason="must be a non-empty string")
        if isinstance(self.connect_retries, bool) or not isinstance(self.connect_retries, int):
            raise ConfigInvalidFault(key="database.connect_retries", reason="must be an integer")
        if self.connect_retries < 1:
            raise ConfigInvalidFault(key="database.connect_retries", reason="must be at least 1")
        if not isinstance(self.options, dict):
            raise ConfigInvalidFault(key="database.options", reason="must be a mapping")


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > config files > defaults
    """

    def __init__(self, env_prefix: str = "TESSERA_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list] = None,
        env_prefix: str = "TESSERA_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources with proper merge strategy.

        Args:
            paths: Config file paths (.yaml, .yml or .json)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)
        """
        loader = cls(env_prefix=env_prefix)

        for path in paths or []:
            loader._load_file(Path(path))

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_file(self, path: Path):
        if not path.exists():
            raise ConfigInvalidFault(key=str(path), reason="config file not found")
        if path.suffix in (".yaml", ".yml"):
            self._load_yaml_file(path)
        elif path.suffix == ".json":
            self._load_json_file(path)
        else:
            raise ConfigInvalidFault(key=str(path), reason=f"unsupported config format '{path.suffix}'")
        logger.debug(f"Loaded config file {path}")

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigInvalidFault(key=str(path), reason="top level must be a mapping")
        self._merge_dict(self.config_data, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        import yaml
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigInvalidFault(key=str(path), reason="top level must be a mapping")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        env_path = Path(path)
        if not env_path.exists():
            return

        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                if "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip('"').strip("'")

                    if key.startswith(self.env_prefix):
                        self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert TESSERA_DATABASE__URL to {"database": {"url": ...}}."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

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

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def database_config(self) -> DatabaseConfig:
        """Build the ``database`` section into a DatabaseConfig."""
        section = self.get("database", {})
        if isinstance(section, str):
            section = {"url": section}
        if not isinstance(section, dict):
            raise ConfigInvalidFault(key="database", reason="must be a mapping or a URL string")

        known = {"url", "alias", "echo", "connect_retries", "connect_retry_delay", "options"}
        unknown = set(section) - known
        if unknown:
            raise ConfigInvalidFault(key="database", reason=f"unknown keys: {sorted(unknown)}")

        return DatabaseConfig(**section)

    def to_dict(self) -> dict:
        return dict(self.config_data)


def configure_from(config: Union[ConfigLoader, DatabaseConfig]) -> Database:
    """Create the Database described by ``config`` and register it under its alias."""
    if isinstance(config, ConfigLoader):
        config = config.database_config()
    logger.info(f"Configuring database '{config.alias}' -> {config.url}")
    return configure_database(
        config.url,
        alias=config.alias,
        echo=config.echo,
        connect_retries=config.connect_retries,
        connect_retry_delay=config.connect_retry_delay,
        **config.options,
    )


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Attach a stream handler to the ``tessera`` logger tree."""
    root = logging.getLogger("tessera")
    root.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        root.addHandler(handler)
