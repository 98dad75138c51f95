"""
================================================================================
Unit Testing Pytest Configuration
================================================================================

Fixtures wiring the pagetest core to the offline StaticSiteChannel.

Key Features:
- Short timeouts so failing expectations stay fast
- One channel per test, shared by every session the manager launches
- Session and page fixtures with teardown

================================================================================
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio

from pagetest import PageController, PageTestConfig, Session, SessionManager
from pagetest.common.settings import TimeoutSettings
from testsuites.unit.sites import EXAMPLE, PLAYWRIGHT_DEV
from testsuites.unit.static_browser import StaticSiteChannel


@pytest.fixture
def config() -> PageTestConfig:
    return PageTestConfig(
        base_url="https://example.test",
        timeouts=TimeoutSettings(
            navigation_ms=3000,
            action_ms=500,
            expect_ms=500,
            poll_interval_ms=50,
            test_ms=5000,
        ),
    )


@pytest.fixture
def channel() -> StaticSiteChannel:
    return StaticSiteChannel({**EXAMPLE, **PLAYWRIGHT_DEV})


@pytest.fixture
def manager(channel: StaticSiteChannel) -> SessionManager:
    return SessionManager(channel_factory=lambda: channel)


@pytest_asyncio.fixture
async def session(manager: SessionManager, config: PageTestConfig) -> AsyncGenerator[Session, None]:
    session = await manager.launch(config)
    yield session
    await session.close()


@pytest_asyncio.fixture
async def page(session: Session) -> AsyncGenerator[PageController, None]:
    """Fresh page on https://example.test/ in its own context."""
    context = await session.new_context()
    page = await context.new_page()
    await page.goto("/")
    yield page
    await context.close()
