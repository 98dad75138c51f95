"""
================================================================================
UI Testing Pytest Configuration
================================================================================

Fixtures for the live playwright.dev tests.

Key Features:
- One browser Session for the whole pytest session
- Fresh Context + Page per test, closed afterwards
- Screenshot + URL attached to Allure on failure
- Live tests are opt-in: set PAGETEST_LIVE=1

================================================================================
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from loguru import logger

from pagetest import PageController, PageTestConfig, Session, SessionManager
from pagetest.report import attach_png, attach_text


LIVE = os.getenv("PAGETEST_LIVE") == "1"


def pytest_collection_modifyitems(config, items):
    """Skip live browser tests unless PAGETEST_LIVE=1."""
    if LIVE:
        return
    skip_live = pytest.mark.skip(reason="live browser tests need PAGETEST_LIVE=1")
    for item in items:
        if "ui_testing" in str(item.fspath):
            item.add_marker(skip_live)


# ================================================================================
# Browser Fixtures
# ================================================================================

@pytest.fixture(scope="session")
def pagetest_config() -> PageTestConfig:
    """Configuration from config/pagetest.yaml and PAGETEST_* variables."""
    return PageTestConfig.load().with_overrides(base_url="https://playwright.dev")


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def browser_session(pagetest_config: PageTestConfig) -> AsyncGenerator[Session, None]:
    """
    Session-scoped browser.

    Provides a single browser for all tests in the session, reducing
    launch overhead.
    """
    manager = SessionManager()
    session = await manager.launch(pagetest_config)
    yield session
    await manager.close(session)


@pytest_asyncio.fixture(loop_scope="session")
async def page(browser_session: Session, request) -> AsyncGenerator[PageController, None]:
    """Fresh context and page per test."""
    context = await browser_session.new_context()
    page = await context.new_page()
    yield page

    report = getattr(request.node, "rep_call", None)
    if report is not None and report.failed and browser_session.config.runner.screenshot_on_failure:
        try:
            attach_text(await page.current_url(), name="failure_url")
            attach_png(await page.screenshot(full_page=True), name="failure_screenshot")
        except Exception as e:
            logger.warning(f"Failed to capture screenshot on failure: {e}")
    await context.close()


# ================================================================================
# Test Lifecycle Hooks
# ================================================================================

@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Keep each phase's report on the item so fixtures can see failures."""
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)
