"""Configuration loader with multi-source support."""

import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs
import toml

from ..errors import ConfigurationError
from .schema import MimeUtilConfig

logger = logging.getLogger(__name__)

APP_NAME = "mimeutil"


class ConfigLoader:
    """Loads configuration from multiple sources with priority.

    Sources, lowest priority first: bundled defaults, system config,
    user config, an explicit config file, then environment variables.
    """

    def __init__(self, app_name: str = APP_NAME) -> None:
        self.app_name = app_name
        self._config: Optional[MimeUtilConfig] = None

    @property
    def env_prefix(self) -> str:
        return f"{self.app_name.upper().replace('-', '_')}_"

    def load(self, config_file: Optional[Path] = None) -> MimeUtilConfig:
        """Load configuration from all sources.

        Args:
            config_file: Optional TOML file merged over system and user config

        Returns:
            Validated configuration object

        Raises:
            ConfigurationError: If a file cannot be parsed or validation fails
        """
        # 1. Start with defaults (shipped with app)
        config_dict = self._load_defaults()

        # 2. Merge system config
        system_config = self._load_system_config()
        if system_config:
            config_dict = self._deep_merge(config_dict, system_config)

        # 3. Merge user config
        user_config = self._load_user_config()
        if user_config:
            config_dict = self._deep_merge(config_dict, user_config)

        # 4. Merge explicit config file
        if config_file is not None:
            config_dict = self._deep_merge(config_dict, self._read_toml(Path(config_file)))

        # 5. Override with environment variables
        config_dict = self._apply_env_overrides(config_dict)

        # 6. Validate and create Config object
        try:
            self._config = MimeUtilConfig(**config_dict)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        return self._config

    def _read_toml(self, path: Path) -> Dict[str, Any]:
        try:
            return toml.load(path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}", path=str(path)) from e

    def _load_defaults(self) -> Dict[str, Any]:
        """Load default configuration shipped with the package."""
        text = (resources.files("mimeutil.config") / "defaults.toml").read_text(encoding="utf-8")
        return toml.loads(text)

    def _system_config_path(self) -> Path:
        if os.name == "nt":  # Windows
            return (
                Path(os.environ.get("PROGRAMDATA", "C:\\ProgramData"))
                / self.app_name
                / "config.toml"
            )
        return Path(f"/etc/{self.app_name}/config.toml")

    def _user_config_path(self) -> Path:
        return platformdirs.user_config_path(appname=self.app_name, appauthor=False) / "config.toml"

    def _load_system_config(self) -> Optional[Dict[str, Any]]:
        """Load system-wide configuration."""
        system_path = self._system_config_path()
        if system_path.exists():
            logger.debug(f"Loading system config from {system_path}")
            return self._read_toml(system_path)
        return None

    def _load_user_config(self) -> Optional[Dict[str, Any]]:
        """Load user-specific configuration."""
        user_config_path = self._user_config_path()

        logger.debug(f"Looking for user config: app_name={self.app_name}, path={user_config_path}, exists={user_config_path.exists()}")

        if user_config_path.exists():
            return self._read_toml(user_config_path)

        return None

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Override config with environment variables."""
        # Format: MIMEUTIL_SECTION__KEY, e.g. MIMEUTIL_MAGIC__USE_SYSTEM_RULES
        prefix = self.env_prefix

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(prefix):
                continue

            key_path = env_key[len(prefix):].lower().split("__")
            if len(key_path) < 2 or not all(key_path):
                logger.debug(f"Ignoring environment variable without section: {env_key}")
                continue

            current = config
            for part in key_path[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]

            current[key_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str) -> Any:
        """Convert string environment variable to appropriate type."""
        # Number
        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        # Boolean
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        # List (comma-separated)
        if "," in value:
            return [v.strip() for v in value.split(",")]

        # String
        return value

    def save_user_config(self, config: MimeUtilConfig) -> Path:
        """Save user configuration and return the file written."""
        user_config_path = self._user_config_path()

        user_config_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = config.model_dump(exclude_none=True)
        with open(user_config_path, "w", encoding="utf-8") as f:
            toml.dump(config_dict, f)
        return user_config_path

    @property
    def config(self) -> MimeUtilConfig:
        """Get loaded configuration."""
        if self._config is None:
            self._config = self.load()
        return self._config


# Global instance
_loader = ConfigLoader()


def get_config() -> MimeUtilConfig:
    """Get global configuration instance."""
    return _loader.config


def reload_config(config_file: Optional[Path] = None) -> MimeUtilConfig:
    """Reload configuration from all sources."""
    return _loader.load(config_file)
