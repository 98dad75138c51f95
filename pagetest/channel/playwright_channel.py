"""
================================================================================
Playwright Control Channel
================================================================================

ControlChannel backed by the Playwright async API.

One channel drives one browser process. Playwright objects never leave this
module: contexts, pages and element handles are stored in id registries and
the core only ever sees the ids.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from pagetest.channel.base import Command, ControlChannel, Handler
from pagetest.errors import ChannelError


class PlaywrightChannel(ControlChannel):
    """
    Control channel driving a real browser through Playwright.

    Usage:
        channel = PlaywrightChannel()
        await channel.request(Command.LAUNCH, engine="chromium", headless=True)
        context_id = await channel.request(Command.NEW_CONTEXT, options={})
        page_id = await channel.request(Command.NEW_PAGE, context_id=context_id)
    """

    # Launch args applied to every chromium launch
    DEFAULT_CHROMIUM_ARGS: Sequence[str] = (
        "--disable-dev-shm-usage",
    )

    # Live element handles kept per page; the oldest are disposed past this
    MAX_ELEMENTS_PER_PAGE = 256

    def __init__(self) -> None:
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._contexts: Dict[str, BrowserContext] = {}
        self._pages: Dict[str, Page] = {}
        self._page_context: Dict[str, str] = {}
        self._elements: Dict[str, Dict[str, ElementHandle]] = {}
        self._ids = itertools.count(1)
        super().__init__()

    def handlers(self) -> Dict[Command, Handler]:
        return {
            Command.LAUNCH: self._launch,
            Command.NEW_CONTEXT: self._new_context,
            Command.NEW_PAGE: self._new_page,
            Command.NAVIGATE: self._navigate,
            Command.EVALUATE: self._evaluate,
            Command.QUERY_SELECTOR: self._query_selector,
            Command.GET_ATTRIBUTE: self._get_attribute,
            Command.GET_TEXT: self._get_text,
            Command.IS_VISIBLE: self._is_visible,
            Command.CLICK: self._click,
            Command.FILL: self._fill,
            Command.GET_TITLE: self._get_title,
            Command.GET_URL: self._get_url,
            Command.SCREENSHOT: self._screenshot,
            Command.CLOSE_PAGE: self._close_page,
            Command.CLOSE_CONTEXT: self._close_context,
            Command.CLOSE: self._close,
        }

    def _next_id(self, kind: str) -> str:
        return f"{kind}@{next(self._ids)}"

    # =========================================================================
    # Browser / Context / Page lifecycle
    # =========================================================================

    async def _launch(
        self,
        engine: str = "chromium",
        headless: bool = True,
        args: Sequence[str] = (),
        slow_mo_ms: int = 0,
    ) -> str:
        if self._browser is not None:
            raise ChannelError("Browser already launched", command=Command.LAUNCH.value)

        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, engine, None)
        if launcher is None:
            raise ChannelError(f"Unknown browser engine: {engine}", command=Command.LAUNCH.value)

        launch_args = list(args)
        if engine == "chromium":
            launch_args = list(self.DEFAULT_CHROMIUM_ARGS) + launch_args

        try:
            self._browser = await launcher.launch(
                headless=headless,
                args=launch_args,
                slow_mo=slow_mo_ms or None,
            )
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.LAUNCH.value) from e

        logger.debug(f"Browser started: {engine} (headless={headless})")
        return self._next_id("browser")

    async def _new_context(self, options: Optional[Dict[str, Any]] = None) -> str:
        browser = self._require_browser()
        try:
            context = await browser.new_context(**(options or {}))
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.NEW_CONTEXT.value) from e

        context_id = self._next_id("context")
        self._contexts[context_id] = context
        return context_id

    async def _new_page(self, context_id: str) -> str:
        context = self._contexts.get(context_id)
        if context is None:
            raise ChannelError(f"Unknown context: {context_id}", command=Command.NEW_PAGE.value)
        try:
            page = await context.new_page()
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.NEW_PAGE.value) from e

        page_id = self._next_id("page")
        self._pages[page_id] = page
        self._page_context[page_id] = context_id
        self._elements[page_id] = {}
        return page_id

    async def _close_page(self, page_id: str) -> None:
        page = self._pages.pop(page_id, None)
        self._page_context.pop(page_id, None)
        self._elements.pop(page_id, None)
        if page is not None and not page.is_closed():
            await page.close()

    async def _close_context(self, context_id: str) -> None:
        for page_id, owner in list(self._page_context.items()):
            if owner == context_id:
                self._pages.pop(page_id, None)
                self._page_context.pop(page_id, None)
                self._elements.pop(page_id, None)
        context = self._contexts.pop(context_id, None)
        if context is not None:
            await context.close()

    async def _close(self) -> None:
        for context_id in list(self._contexts):
            try:
                await self._close_context(context_id)
            except PlaywrightError as e:
                logger.warning(f"Failed to close context {context_id}: {e.message}")

        if self._browser is not None:
            await self._browser.close()
            self._browser = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

        logger.debug("Browser closed")

    # =========================================================================
    # Page commands
    # =========================================================================

    async def _navigate(
        self,
        page_id: str,
        url: str,
        wait_until: str = "domcontentloaded",
    ) -> Dict[str, Any]:
        page = self._require_page(page_id)
        await self._forget_elements(page_id)
        try:
            # The core owns the deadline; timeout=0 disables Playwright's own.
            response = await page.goto(url, wait_until=wait_until, timeout=0)
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.NAVIGATE.value) from e

        return {
            "url": page.url,
            "status": response.status if response is not None else None,
        }

    async def _evaluate(self, page_id: str, script: str, arg: Any = None) -> Any:
        page = self._require_page(page_id)
        try:
            return await page.evaluate(script, arg)
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.EVALUATE.value) from e

    async def _get_title(self, page_id: str) -> str:
        page = self._require_page(page_id)
        try:
            return await page.title()
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.GET_TITLE.value) from e

    async def _get_url(self, page_id: str) -> str:
        return self._require_page(page_id).url

    async def _screenshot(self, page_id: str, full_page: bool = False) -> bytes:
        page = self._require_page(page_id)
        try:
            return await page.screenshot(full_page=full_page)
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.SCREENSHOT.value) from e

    # =========================================================================
    # Element commands
    # =========================================================================

    async def _query_selector(
        self,
        page_id: str,
        engine: str,
        selector: str,
        scope: Optional[List[str]] = None,
    ) -> List[str]:
        page = self._require_page(page_id)
        query = f"{engine}={selector}"

        try:
            if scope is None:
                found = await page.query_selector_all(query)
            else:
                found = []
                for element_id in scope:
                    parent = self._require_element(page_id, element_id)
                    found.extend(await parent.query_selector_all(query))
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.QUERY_SELECTOR.value) from e

        if scope is None or len(scope) < 2:
            return await self._register(page_id, found)
        return await self._register_unique(page_id, found)

    async def _register(self, page_id: str, handles: List[ElementHandle]) -> List[str]:
        registry = self._elements[page_id]
        ids: List[str] = []
        for handle in handles:
            element_id = self._next_id("element")
            registry[element_id] = handle
            ids.append(element_id)

        overflow = len(registry) - max(self.MAX_ELEMENTS_PER_PAGE, len(ids))
        if overflow > 0:
            stale = list(itertools.islice(registry, overflow))
            await self._dispose([registry.pop(element_id) for element_id in stale])
        return ids

    async def _register_unique(self, page_id: str, handles: List[ElementHandle]) -> List[str]:
        """Register handles, dropping duplicates matched through nested scopes."""
        kept: List[ElementHandle] = []
        for handle in handles:
            duplicate = False
            for other in kept:
                if await handle.evaluate("(a, b) => a === b", other):
                    duplicate = True
                    break
            if duplicate:
                await handle.dispose()
                continue
            kept.append(handle)
        return await self._register(page_id, kept)

    async def _get_attribute(self, page_id: str, element_id: str, name: str) -> Optional[str]:
        handle = self._require_element(page_id, element_id)
        try:
            return await handle.get_attribute(name)
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.GET_ATTRIBUTE.value) from e

    async def _get_text(self, page_id: str, element_id: str) -> Optional[str]:
        handle = self._require_element(page_id, element_id)
        try:
            return await handle.text_content()
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.GET_TEXT.value) from e

    async def _is_visible(self, page_id: str, element_id: str) -> bool:
        handle = self._require_element(page_id, element_id)
        try:
            return await handle.is_visible()
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.IS_VISIBLE.value) from e

    async def _click(self, page_id: str, element_id: str, timeout_ms: int = 5000) -> None:
        handle = self._require_element(page_id, element_id)
        try:
            await handle.click(timeout=timeout_ms)
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.CLICK.value) from e

    async def _fill(self, page_id: str, element_id: str, value: str, timeout_ms: int = 5000) -> None:
        handle = self._require_element(page_id, element_id)
        try:
            await handle.fill(value, timeout=timeout_ms)
        except PlaywrightError as e:
            raise ChannelError(e.message, command=Command.FILL.value) from e

    # =========================================================================
    # Registries
    # =========================================================================

    def _require_browser(self) -> Browser:
        if self._browser is None:
            raise ChannelError("Browser not started", command=Command.NEW_CONTEXT.value)
        return self._browser

    def _require_page(self, page_id: str) -> Page:
        page = self._pages.get(page_id)
        if page is None:
            raise ChannelError(f"Target page has been closed: {page_id}")
        return page

    def _require_element(self, page_id: str, element_id: str) -> ElementHandle:
        handle = self._elements.get(page_id, {}).get(element_id)
        if handle is None:
            raise ChannelError(f"Element is not attached to the DOM: {element_id}")
        return handle

    async def _forget_elements(self, page_id: str) -> None:
        registry = self._elements.get(page_id)
        if registry:
            handles = list(registry.values())
            registry.clear()
            await self._dispose(handles)

    @staticmethod
    async def _dispose(handles) -> None:
        for handle in list(handles):
            try:
                await handle.dispose()
            except PlaywrightError as e:
                # Handles from a replaced document are already gone.
                logger.debug(f"Ignoring error while disposing element handle: {e.message}")


__all__ = [
    "PlaywrightChannel",
]
