"""Configuration management for photovault.

This module provides centralized configuration management using environment
variables. Values are cast to the requested type and cached per key.
"""

import os
from typing import Any

from .errors import ConfigurationError
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_DATABASE_PATH = "./photos.db"
DEFAULT_MIGRATION_DIR = "./migrations"


class Config:
    """Centralized configuration management using environment variables."""

    def __init__(self):
        """Initialize configuration."""
        self._cache = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get configuration value from environment variables.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)

        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")  # type: ignore[assignment]
                    else:
                        value = bool(value)  # type: ignore[assignment]
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
                value = default

        self._cache[cache_key] = value
        return value

    def get_required(self, key: str, cast_type: type = str) -> Any:
        """Get required configuration value.

        Raises:
            ConfigurationError: If the required configuration is not found
        """
        value = self.get(key, cast_type=cast_type)
        if value is None or value == "":
            raise ConfigurationError(f"{key} environment variable is required", details={"key": key})
        return value

    @property
    def photo_storage_path(self) -> str:
        return str(self.get_required("PHOTO_STORAGE_PATH"))

    @property
    def database_path(self) -> str:
        return str(self.get("DATABASE_PATH", DEFAULT_DATABASE_PATH))

    @property
    def migrations_dir(self) -> str:
        return str(self.get("MIGRATION_DIR", DEFAULT_MIGRATION_DIR))


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the global configuration instance so the environment is re-read."""
    global _config
    _config = None
