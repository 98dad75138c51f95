"""
================================================================================
pagetest
================================================================================

Browser-driven test harness core: sessions, pages, lazy locators,
auto-retrying assertions and a fixture runner.

Usage:
    import re
    from pagetest import FixtureRunner, PageTestConfig, TestSuite, expect

    suite = TestSuite("playwright.dev")

    @suite.test
    async def homepage_has_title(page):
        await page.goto("https://playwright.dev")
        await expect(page).to_have_title(re.compile("Playwright"))

    results = await FixtureRunner(PageTestConfig.load()).run(suite)

================================================================================
"""

from pagetest.channel import Command, ControlChannel, PlaywrightChannel
from pagetest.common import ConfigLoader, PageTestConfig, init_logger
from pagetest.errors import (
    ChannelError,
    ConfigurationError,
    ElementNotFoundError,
    EvaluationError,
    ExpectationFailed,
    LaunchError,
    NavigationError,
    NavigationSupersededError,
    NavigationTimeoutError,
    PageClosedError,
    PageTestError,
    SessionClosedError,
    StrictModeViolationError,
    TestTimeoutError,
)
from pagetest.expect import expect
from pagetest.locator import ElementHandle, Locator
from pagetest.page import NavigationResult, PageController
from pagetest.polling import Poller, PollState, poll_until
from pagetest.runner import FixtureRunner, TestOutcome, TestResult, TestSuite
from pagetest.session import Context, Session, SessionManager

__version__ = "1.0.0"

__all__ = [
    "Command",
    "ControlChannel",
    "PlaywrightChannel",
    "ConfigLoader",
    "PageTestConfig",
    "init_logger",
    "SessionManager",
    "Session",
    "Context",
    "PageController",
    "NavigationResult",
    "Locator",
    "ElementHandle",
    "expect",
    "poll_until",
    "Poller",
    "PollState",
    "FixtureRunner",
    "TestSuite",
    "TestResult",
    "TestOutcome",
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
]
