"""
================================================================================
Error Taxonomy
================================================================================

Exceptions raised by the pagetest core.

Run-fatal:
    - LaunchError: browser could not be started

Programming errors:
    - SessionClosedError: a handle was used after teardown

Per-test failures (recorded on the TestResult, siblings keep running):
    - NavigationError / NavigationTimeoutError / NavigationSupersededError
    - EvaluationError
    - ElementNotFoundError / StrictModeViolationError
    - ExpectationFailed
    - TestTimeoutError

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from typing import Any, Optional


class PageTestError(Exception):
    """Base class for all pagetest errors."""
    pass


class ConfigurationError(PageTestError):
    """Raised when configuration loading or access fails."""
    pass


class ChannelError(PageTestError):
    """
    Raised by a control channel when the browser backend rejects a command.

    The message is the backend's message, verbatim.
    """

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message)
        self.command = command


class LaunchError(PageTestError):
    """Raised when the browser process cannot be started."""
    pass


class SessionClosedError(PageTestError):
    """Raised when a Session, Context or Page is used after it was closed."""
    pass


class NavigationError(PageTestError):
    """Raised when a navigation fails before any load state is reached."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class NavigationTimeoutError(NavigationError):
    """Raised when a navigation does not reach its load state in time."""
    pass


class NavigationSupersededError(NavigationError):
    """Raised to the caller of a goto() that a newer goto() cancelled."""
    pass


class EvaluationError(PageTestError):
    """Raised when a script throws inside the document."""

    def __init__(self, message: str, script: str = ""):
        super().__init__(message)
        self.script = script


class PageClosedError(SessionClosedError, EvaluationError):
    """Raised when a script is evaluated on a page that is already closed."""

    def __init__(self, message: str, script: str = ""):
        EvaluationError.__init__(self, message, script=script)


class ElementNotFoundError(PageTestError):
    """Raised when an action finds no element before its timeout expires."""

    def __init__(self, message: str, selector: str = "", timeout_ms: int = 0):
        super().__init__(message)
        self.selector = selector
        self.timeout_ms = timeout_ms


class StrictModeViolationError(PageTestError):
    """Raised when an action targets a locator matching several elements."""

    def __init__(self, message: str, selector: str = "", count: int = 0):
        super().__init__(message)
        self.selector = selector
        self.count = count


class TestTimeoutError(PageTestError):
    """Raised when a test body exceeds its time budget."""

    __test__ = False

    def __init__(self, message: str, timeout_ms: int = 0):
        super().__init__(message)
        self.timeout_ms = timeout_ms


class ExpectationFailed(PageTestError, AssertionError):
    """
    Raised when a polled expectation does not hold before its timeout.

    Attributes:
        description: What was being checked
        expected: Expected value or pattern
        actual: Last observed value
        attempts: Number of probes made
        elapsed_ms: Time spent polling
    """

    def __init__(
        self,
        description: str,
        expected: Any,
        actual: Any,
        attempts: int = 0,
        elapsed_ms: int = 0,
        last_error: Optional[str] = None,
    ):
        self.description = description
        self.expected = expected
        self.actual = actual
        self.attempts = attempts
        self.elapsed_ms = elapsed_ms
        self.last_error = last_error

        message = (
            f"{description}: expected {format_value(expected)}, "
            f"last observed {format_value(actual)} "
            f"({attempts} attempts in {elapsed_ms}ms)"
        )
        if last_error:
            message += f". Last error: {last_error}"
        super().__init__(message)


def format_value(value: Any) -> str:
    """Render a value for messages; compiled patterns show as /pattern/."""
    pattern = getattr(value, "pattern", None)
    if isinstance(pattern, str):
        return f"/{pattern}/"
    return repr(value)


__all__ = [
    "PageTestError",
    "ConfigurationError",
    "ChannelError",
    "LaunchError",
    "SessionClosedError",
    "NavigationError",
    "NavigationTimeoutError",
    "NavigationSupersededError",
    "EvaluationError",
    "PageClosedError",
    "ElementNotFoundError",
    "StrictModeViolationError",
    "TestTimeoutError",
    "ExpectationFailed",
    "format_value",
]
