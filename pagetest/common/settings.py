"""
Typed, frozen settings built from a ConfigLoader.

Every Session, Context and Page receives its settings explicitly; nothing in
the core reads configuration from a module-level global.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pagetest.common.global_config import ConfigLoader
from pagetest.errors import ConfigurationError


BROWSER_ENGINES = ("chromium", "firefox", "webkit")
SELECTOR_ENGINES = ("css", "text")
ISOLATION_LEVELS = ("context", "page")
SESSION_SCOPES = ("run", "test")
PARALLEL_SCOPES = ("none", "fixtures")


@dataclass(frozen=True)
class BrowserSettings:
    engine: str = "chromium"
    headless: bool = True
    launch_timeout_ms: int = 30000
    slow_mo_ms: int = 0
    args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ContextSettings:
    viewport_width: int = 1280
    viewport_height: int = 720
    locale: Optional[str] = None
    ignore_https_errors: bool = False

    def to_options(self) -> Dict[str, Any]:
        """Render as new-context options for the control channel."""
        options: Dict[str, Any] = {
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "ignore_https_errors": self.ignore_https_errors,
        }
        if self.locale:
            options["locale"] = self.locale
        return options


@dataclass(frozen=True)
class TimeoutSettings:
    """Default timeouts in milliseconds."""

    navigation_ms: int = 30000
    action_ms: int = 5000
    expect_ms: int = 5000
    poll_interval_ms: int = 100
    test_ms: int = 60000


@dataclass(frozen=True)
class SelectorSettings:
    default_engine: str = "css"
    strict: bool = True


@dataclass(frozen=True)
class RunnerSettings:
    workers: int = 1
    parallel_scope: str = "none"
    isolation: str = "context"
    session_scope: str = "run"
    screenshot_on_failure: bool = True


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    format: Optional[str] = None
    file: Optional[str] = None


@dataclass(frozen=True)
class PageTestConfig:
    """
    Complete pagetest configuration.

    Usage:
        >>> config = PageTestConfig.load()
        >>> config.browser.engine
        'chromium'
        >>> config.with_overrides(base_url="https://playwright.dev").base_url
        'https://playwright.dev'
    """

    base_url: str = ""
    browser: BrowserSettings = field(default_factory=BrowserSettings)
    context: ContextSettings = field(default_factory=ContextSettings)
    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    selectors: SelectorSettings = field(default_factory=SelectorSettings)
    runner: RunnerSettings = field(default_factory=RunnerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def __post_init__(self) -> None:
        _check_choice("browser.engine", self.browser.engine, BROWSER_ENGINES)
        _check_choice("selectors.default_engine", self.selectors.default_engine, SELECTOR_ENGINES)
        _check_choice("runner.isolation", self.runner.isolation, ISOLATION_LEVELS)
        _check_choice("runner.session_scope", self.runner.session_scope, SESSION_SCOPES)
        _check_choice("runner.parallel_scope", self.runner.parallel_scope, PARALLEL_SCOPES)
        if self.runner.workers < 1:
            raise ConfigurationError("runner.workers must be at least 1")
        if self.timeouts.poll_interval_ms <= 0:
            raise ConfigurationError("timeouts.poll_interval_ms must be positive")

    @classmethod
    def load(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        loader: Optional[ConfigLoader] = None,
    ) -> "PageTestConfig":
        """
        Build a configuration from YAML and environment variables.

        Args:
            config_path: Optional YAML file path
            loader: Pre-built loader (takes precedence over config_path)
        """
        loader = loader or ConfigLoader(config_path)
        return cls(
            base_url=loader.get("base_url", ""),
            browser=_section(loader, "browser", BrowserSettings()),
            context=_section(loader, "context", ContextSettings()),
            timeouts=_section(loader, "timeouts", TimeoutSettings()),
            selectors=_section(loader, "selectors", SelectorSettings()),
            runner=_section(loader, "runner", RunnerSettings()),
            logging=_section(loader, "logging", LoggingSettings()),
        )

    def with_overrides(self, **sections: Any) -> "PageTestConfig":
        """
        Return a copy with top-level fields replaced.

        Nested sections accept a dict of field overrides:
            config.with_overrides(timeouts={"expect_ms": 2000})
        """
        changes: Dict[str, Any] = {}
        for name, value in sections.items():
            current = getattr(self, name)
            if isinstance(value, dict):
                changes[name] = replace(current, **value)
            else:
                changes[name] = value
        return replace(self, **changes)


def _section(loader: ConfigLoader, name: str, defaults: Any) -> Any:
    """Read each field of a settings dataclass from '<name>.<field>'."""
    values = {}
    for field_name in defaults.__dataclass_fields__:
        default = getattr(defaults, field_name)
        value = loader.get(f"{name}.{field_name}", default)
        if isinstance(default, tuple) and isinstance(value, list):
            value = tuple(value)
        values[field_name] = value
    return type(defaults)(**values)


def _check_choice(key: str, value: str, choices: Tuple[str, ...]) -> None:
    if value not in choices:
        raise ConfigurationError(
            f"Invalid value for {key}: {value!r} (expected one of {', '.join(choices)})"
        )


__all__ = [
    "PageTestConfig",
    "BrowserSettings",
    "ContextSettings",
    "TimeoutSettings",
    "SelectorSettings",
    "RunnerSettings",
    "LoggingSettings",
]
