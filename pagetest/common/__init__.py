"""
================================================================================
pagetest Common Utilities
================================================================================

Shared configuration management and logging setup.

Exports:
    - ConfigLoader: YAML + environment configuration reader
    - PageTestConfig: frozen settings handed to sessions and runners
    - init_logger / get_logger: Loguru setup

Usage:
    from pagetest.common import PageTestConfig, init_logger

    config = PageTestConfig.load()
    init_logger(config.logging.level)

================================================================================
"""

from .global_config import ConfigLoader, DEFAULT_CONFIG_PATH, get_logger, init_logger
from .settings import (
    BrowserSettings,
    ContextSettings,
    LoggingSettings,
    PageTestConfig,
    RunnerSettings,
    SelectorSettings,
    TimeoutSettings,
)

__all__ = [
    "ConfigLoader",
    "DEFAULT_CONFIG_PATH",
    "get_logger",
    "init_logger",
    "PageTestConfig",
    "BrowserSettings",
    "ContextSettings",
    "TimeoutSettings",
    "SelectorSettings",
    "RunnerSettings",
    "LoggingSettings",
]
