"""
================================================================================
Global Configuration and Logging
================================================================================

YAML-based configuration with environment variable overrides, plus the
centralized Loguru logger setup shared by every pagetest module.

Configuration hierarchy (highest to lowest priority):
    1. Environment variables (PAGETEST_BROWSER_HEADLESS overrides browser.headless)
    2. YAML configuration file (config/pagetest.yaml by default)
    3. Default values passed to get()

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from loguru import logger

from pagetest.errors import ConfigurationError


DEFAULT_CONFIG_PATH = Path("config") / "pagetest.yaml"
CONFIG_PATH_ENV = "PAGETEST_CONFIG"
ENV_PREFIX = "PAGETEST_"

DEFAULT_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "{name}:{function}:{line} | {message}"
)

_logger_initialized: bool = False


class ConfigLoader:
    """
    Configuration loader with YAML and environment variable support.

    Unlike a process-wide singleton, each loader is an explicit object: the
    configuration is read once and handed to whoever launches a session.

    Usage:
        >>> config = ConfigLoader()
        >>> config.get("browser.engine", "chromium")
        'firefox'  # From YAML or PAGETEST_BROWSER_ENGINE

    Environment Variable Mapping:
        - base_url -> PAGETEST_BASE_URL
        - browser.headless -> PAGETEST_BROWSER_HEADLESS
        - timeouts.expect_ms -> PAGETEST_TIMEOUTS_EXPECT_MS
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Initialize configuration loader.

        Args:
            config_path: Path to YAML configuration file. Falls back to the
                PAGETEST_CONFIG env var, then DEFAULT_CONFIG_PATH.
            environ: Environment mapping (defaults to os.environ)
        """
        self._environ = os.environ if environ is None else environ
        if config_path is None:
            config_path = self._environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
        self._config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    @property
    def config_path(self) -> Path:
        return self._config_path

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        if not self._config_path.exists():
            logger.debug(
                f"Configuration file not found: {self._config_path}. "
                f"Using defaults and environment variables only."
            )
            self._config = {}
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {e}"
            ) from e

        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {self._config_path}"
            )
        self._config = loaded
        logger.debug(f"Loaded configuration from: {self._config_path}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation path.

        First checks environment variables, then YAML config, then default.

        Args:
            key: Dot-notation path (e.g., "browser.engine")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        env_key = ENV_PREFIX + key.upper().replace(".", "_")
        env_value = self._environ.get(env_key)
        if env_value is not None:
            return self._convert_type(env_value, default)

        value: Any = self._config
        for part in key.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                value = None

            if value is None:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire configuration section, or an empty dict."""
        value = self._config.get(section, {})
        return value if isinstance(value, dict) else {}

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()
        logger.info(f"Configuration reloaded from: {self._config_path}")

    def _convert_type(self, value: str, reference: Any) -> Any:
        """
        Convert string value to match reference type.

        Used for environment variables which are always strings.
        """
        if reference is None:
            return value

        if isinstance(reference, bool):
            return value.strip().lower() in ("true", "1", "yes", "on")
        if isinstance(reference, int):
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"Expected an integer, got {value!r}") from e
        if isinstance(reference, float):
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"Expected a number, got {value!r}") from e
        if isinstance(reference, (list, tuple)):
            return [item.strip() for item in value.split(",") if item.strip()]

        return value


def init_logger(
    level: str = "INFO",
    format_str: Optional[str] = None,
    log_file: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    Initializes the global Loguru logger with consistent configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format_str: Custom log format string
        log_file: Optional file path for an additional rotating sink
        force: Reconfigure even if already initialized
    """
    global _logger_initialized

    if _logger_initialized and not force:
        return

    log_format = format_str or DEFAULT_LOG_FORMAT

    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=log_format,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level.upper(),
            format=log_format.replace("{level: <8}", "{level}"),
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )

    _logger_initialized = True
    logger.debug(f"Logger initialized with level: {level}")


def get_logger():
    """Returns the Loguru logger, initializing it with defaults if needed."""
    if not _logger_initialized:
        init_logger()
    return logger


__all__ = [
    "ConfigLoader",
    "DEFAULT_CONFIG_PATH",
    "init_logger",
    "get_logger",
]
