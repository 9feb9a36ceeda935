"""
Configuration for the BoulderFlow client core.

Two layers live here:

* ``Settings``: environment-driven settings (``BF_`` prefix, optional
  ``.env`` file) covering Supabase access, the functions service and
  logging.
* A YAML file (``boulderflow/cfg/user_config.yaml`` by default) holding
  tunable defaults for the grip editor, the camera helper and the proximity
  ranker, loaded with caching and structural validation.
"""

from __future__ import annotations

import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Cache for configuration to avoid repeated file reads
_config_cache: Optional[dict[str, Any]] = None

# Lock for thread-safe access to the configuration cache
_config_lock = threading.Lock()

# Package directory (boulderflow/)
PACKAGE_ROOT = Path(__file__).parent

# Project root directory (parent of boulderflow/)
PROJECT_ROOT = PACKAGE_ROOT.parent

DEFAULT_CONFIG_PATH = "cfg/user_config.yaml"

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigurationError(Exception):
    """Raised when there are issues with configuration loading or validation."""


class Settings(BaseSettings):
    """Environment-driven application settings.

    Every field can be set through an environment variable named after it
    with the ``BF_`` prefix, e.g. ``BF_SUPABASE_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="BF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "BoulderFlow"
    app_version: str = "0.1.0"
    debug: bool = False
    testing: bool = False
    log_level: str = "INFO"

    supabase_url: str = ""
    supabase_key: str = ""
    supabase_timeout_seconds: int = Field(default=10, ge=1, le=120)

    functions_api_key: str = ""
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    detection_weights_path: str = ""
    detection_conf_threshold: float = Field(default=0.25, ge=0.0, le=1.0)

    exposed_secret_keys: list[str] = Field(
        default_factory=lambda: ["GOOGLE_MAPS_API_KEY"]
    )
    geocoding_timeout_seconds: float = Field(default=5.0, gt=0.0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level and reject unknown names.

        Args:
            v: Log level name in any case.

        Returns:
            The upper-cased level name.

        Raises:
            ValueError: If the name is not a standard logging level.
        """
        level = v.upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {_VALID_LOG_LEVELS}, got '{v}'"
            )
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings.

    Returns:
        Settings loaded from the environment on first call.
    """
    return Settings()


def get_settings_override(overrides: dict[str, Any]) -> Settings:
    """Build an uncached Settings instance with explicit overrides.

    Args:
        overrides: Field values taking precedence over the environment.

    Returns:
        A new Settings instance.

    Example:
        >>> settings = get_settings_override({"supabase_url": "https://x.co"})
    """
    return Settings(**overrides)


def get_project_root() -> Path:
    """
    Get the project root directory.

    Returns:
        Path: The absolute path to the project root directory.
    """
    return PROJECT_ROOT


def resolve_path(path_str: str, relative_to: Optional[Path] = None) -> Path:
    """
    Resolve a path string to an absolute path.

    Relative paths are resolved against the package directory unless
    another base directory is given. Absolute paths are returned as-is.

    Args:
        path_str: The path string to resolve.
        relative_to: Optional base directory for relative paths.

    Returns:
        Path: The resolved absolute path.
    """
    path = Path(path_str)

    if path.is_absolute():
        return path

    base_dir = relative_to if relative_to is not None else PACKAGE_ROOT
    return (base_dir / path).resolve()


def load_config(
    config_path: str = DEFAULT_CONFIG_PATH, force_reload: bool = False
) -> dict[str, Any]:
    """
    Load configuration from a YAML file with caching.

    Args:
        config_path: Path to the configuration YAML file, relative to the
                     package directory.
        force_reload: If True, bypass the cache and reload from disk.

    Returns:
        Dict[str, Any]: The parsed configuration dictionary.

    Raises:
        ConfigurationError: If the configuration file cannot be found, read,
                           parsed or validated.

    Examples:
        >>> config = load_config()
        >>> config['grip_editor']['toggle_threshold']
        0.05
    """
    global _config_cache  # pylint: disable=global-statement

    with _config_lock:
        if _config_cache is not None and not force_reload:
            logger.debug("Returning cached configuration")
            return _config_cache

        import yaml  # pylint: disable=import-outside-toplevel

        config_file = resolve_path(config_path)

        if not config_file.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_file}\n"
                f"Expected location: {config_path} (relative to package root)"
            )

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if config is None:
                raise ConfigurationError(f"Configuration file is empty: {config_file}")

            if not isinstance(config, dict):
                raise ConfigurationError(
                    f"Configuration must be a dictionary, got {type(config).__name__}"
                )

            _validate_config(config)

            _config_cache = config
            logger.info("Configuration loaded successfully from %s", config_file)

            return config

        except yaml.YAMLError as exc:
            raise ConfigurationError(
                f"Error parsing YAML configuration file {config_file}: {exc}"
            ) from exc
        except OSError as exc:  # pragma: no cover
            raise ConfigurationError(
                f"Error reading configuration file {config_file}: {exc}"
            ) from exc


def _validate_config(config: dict[str, Any]) -> None:
    """
    Validate the structure of the configuration dictionary.

    Args:
        config: The configuration dictionary to validate.

    Raises:
        ConfigurationError: If required configuration sections or keys are missing.
    """
    required_sections = {
        "grip_editor": ["toggle_threshold", "match_threshold"],
        "camera": ["preferred_width", "preferred_height", "jpeg_quality"],
        "proximity": ["earth_radius_km"],
    }

    for section, keys in required_sections.items():
        if section not in config:
            raise ConfigurationError(
                f"Missing required configuration section: '{section}'"
            )

        if not isinstance(config[section], dict):
            raise ConfigurationError(
                f"Configuration section '{section}' must be a dictionary"
            )

        for key in keys:
            if key not in config[section]:
                raise ConfigurationError(
                    f"Missing required configuration key: '{section}.{key}'"
                )


def get_config_value(key_path: str, default: Any = None) -> Any:
    """
    Get a configuration value using dot notation.

    Args:
        key_path: Dot-separated path, e.g. 'camera.jpeg_quality'.
        default: Default value to return if the key is not found.

    Returns:
        The configuration value or the default if not found.
    """
    config = load_config()

    value: Any = config
    for key in key_path.split("."):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def clear_config_cache() -> None:
    """
    Clear the cached configuration.

    This forces the next call to load_config() to reload from disk.
    """
    global _config_cache  # pylint: disable=global-statement
    with _config_lock:
        _config_cache = None
        logger.debug("Configuration cache cleared")
