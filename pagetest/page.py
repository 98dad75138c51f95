"""
================================================================================
Page Controller
================================================================================

One navigable document inside a browsing context.

Provides:
    - Navigation with a deadline and last-navigation-wins semantics
    - Script evaluation
    - Locator construction
    - Title / URL / screenshot access

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urljoin, urlparse

import allure
from loguru import logger

from pagetest.channel.base import Command
from pagetest.common.settings import SelectorSettings, TimeoutSettings
from pagetest.errors import (
    ChannelError,
    EvaluationError,
    NavigationError,
    NavigationSupersededError,
    NavigationTimeoutError,
    PageClosedError,
    SessionClosedError,
)
from pagetest.locator import Locator, text_selector

if TYPE_CHECKING:
    from pagetest.session import Context


SCRIPT_EXCERPT_LENGTH = 80


class NavigationState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"


@dataclass(frozen=True)
class NavigationResult:
    """Outcome of a completed navigation."""
    url: str
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is None or 200 <= self.status < 400


def _excerpt(script: str) -> str:
    script = " ".join(script.split())
    if len(script) > SCRIPT_EXCERPT_LENGTH:
        return script[:SCRIPT_EXCERPT_LENGTH - 3] + "..."
    return script


class PageController:
    """
    Controller for one page.

    Pages are created by a Context; test bodies receive them explicitly.

    Usage:
        page = await context.new_page()
        await page.goto("https://playwright.dev")
        await expect(page).to_have_title(re.compile("Playwright"))
        await page.locator("text=Get Started").click()

    Navigation race policy:
        A goto() issued while another goto() on the same page is still
        pending cancels the pending one. The superseded caller receives
        NavigationSupersededError; only the newest navigation's result
        becomes the page's URL.
    """

    def __init__(
        self,
        context: "Context",
        page_id: str,
        timeouts: TimeoutSettings,
        selectors: SelectorSettings,
        base_url: str = "",
    ):
        self.context = context
        self.page_id = page_id
        self.timeouts = timeouts
        self.selectors = selectors
        self.base_url = base_url

        self._url = "about:blank"
        self._state = NavigationState.IDLE
        self._navigation: Optional[asyncio.Future] = None
        self._closed = False

    def __repr__(self) -> str:
        return f"<PageController {self.page_id} url={self._url!r}>"

    @property
    def url(self) -> str:
        """URL of the last completed navigation (or last URL read)."""
        return self._url

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed or self.context.closed

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError(f"Page {self.page_id} is closed")

    async def request(self, command: Command, **params: Any) -> Any:
        """
        Send a page-scoped command through the session's control channel.

        Raises:
            SessionClosedError: If this page (or an ancestor) is closed
            ChannelError: On backend failure
        """
        self._ensure_open()
        try:
            return await self.context.session.channel.request(
                command, page_id=self.page_id, **params
            )
        except ChannelError as e:
            if self.closed:
                raise SessionClosedError(f"Page {self.page_id} was closed: {e}") from e
            raise

    def resolve_url(self, url: str) -> str:
        """Resolve `url` against the base URL when it is relative."""
        if self.base_url and not urlparse(url).scheme:
            return urljoin(self.base_url.rstrip("/") + "/", url.lstrip("/"))
        return url

    # =========================================================================
    # Navigation
    # =========================================================================

    async def goto(
        self,
        url: str,
        timeout_ms: Optional[int] = None,
        wait_until: str = "domcontentloaded",
    ) -> NavigationResult:
        """
        Navigate and wait until `wait_until` is reached.

        Args:
            url: Absolute URL, or path relative to the base URL
            timeout_ms: Defaults to the navigation timeout
            wait_until: 'commit', 'domcontentloaded', 'load' or 'networkidle'

        Raises:
            NavigationTimeoutError: Load state not reached in time
            NavigationError: Network/DNS failure
            NavigationSupersededError: A newer goto() replaced this one
        """
        self._ensure_open()
        target = self.resolve_url(url)
        timeout = self.timeouts.navigation_ms if timeout_ms is None else timeout_ms

        pending = self._navigation
        if pending is not None and not pending.done():
            logger.debug(f"Navigation to {target} supersedes a pending navigation on {self.page_id}")
            pending.cancel()

        navigation = asyncio.ensure_future(
            self.request(Command.NAVIGATE, url=target, wait_until=wait_until)
        )
        self._navigation = navigation
        self._state = NavigationState.LOADING

        with allure.step(f"Navigate to {target}"):
            try:
                response = await asyncio.wait_for(navigation, timeout=timeout / 1000)
            except asyncio.CancelledError:
                if self._navigation is not navigation and not _cancelling():
                    raise NavigationSupersededError(
                        f"Navigation to {target} was superseded by a newer navigation",
                        url=target,
                    ) from None
                raise
            except asyncio.TimeoutError as e:
                raise NavigationTimeoutError(
                    f"Timeout {timeout}ms exceeded navigating to {target}", url=target
                ) from e
            except SessionClosedError:
                raise
            except ChannelError as e:
                raise NavigationError(f"{e} (navigating to {target})", url=target) from e
            finally:
                if self._navigation is navigation:
                    self._navigation = None
                    self._state = NavigationState.IDLE

        self._url = response.get("url") or target
        logger.debug(f"Navigated to: {self._url}")
        return NavigationResult(url=self._url, status=response.get("status"))

    # =========================================================================
    # Document access
    # =========================================================================

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """
        Evaluate `script` in the document and return its serialized result.

        Raises:
            EvaluationError: If the script throws
            PageClosedError: If the page is closed
        """
        if self.closed:
            raise PageClosedError(
                f"Cannot evaluate on closed page {self.page_id}: {_excerpt(script)}",
                script=script,
            )
        try:
            return await self.request(Command.EVALUATE, script=script, arg=arg)
        except SessionClosedError as e:
            raise PageClosedError(str(e), script=script) from e
        except ChannelError as e:
            raise EvaluationError(f"{e} (evaluating: {_excerpt(script)})", script=script) from e

    async def title(self) -> str:
        return await self.request(Command.GET_TITLE)

    async def current_url(self) -> str:
        """Read the live URL (it changes on link clicks, not only goto)."""
        self._url = await self.request(Command.GET_URL)
        return self._url

    async def screenshot(self, full_page: bool = False) -> bytes:
        return await self.request(Command.SCREENSHOT, full_page=full_page)

    def locator(self, selector: str) -> Locator:
        """Create a Locator; nothing is resolved until it is used."""
        return Locator.from_string(self, selector)

    def get_by_text(self, text: str, exact: bool = False) -> Locator:
        return Locator(page=self, selector=text_selector(text, exact))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        """Close the page. Safe to call more than once."""
        if self.closed:
            self._closed = True
            return
        self._closed = True
        if self._navigation is not None and not self._navigation.done():
            self._navigation.cancel()
        self.context.forget_page(self)
        await self.context.session.channel.request(Command.CLOSE_PAGE, page_id=self.page_id)
        logger.debug(f"Page closed: {self.page_id}")


def _cancelling() -> bool:
    """True if the current task itself has a pending cancellation request."""
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)
    return bool(cancelling and cancelling())


__all__ = [
    "PageController",
    "NavigationResult",
    "NavigationState",
]
