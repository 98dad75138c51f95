"""
================================================================================
Browser Session Manager
================================================================================

Browser lifecycle management.

Features:
    - One Session per browser process (one control channel each)
    - Isolated Contexts (separate cookies / storage) per test
    - Cascading, idempotent teardown
    - Async context managers for scoped acquisition

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from pagetest.channel.base import Command, ControlChannel
from pagetest.channel.playwright_channel import PlaywrightChannel
from pagetest.common.settings import PageTestConfig
from pagetest.errors import LaunchError, SessionClosedError
from pagetest.page import PageController


ChannelFactory = Callable[[], ControlChannel]


class Context:
    """
    Isolated browsing context owned by a Session.

    Usage:
        async with await session.new_context() as context:
            page = await context.new_page()
    """

    def __init__(
        self,
        session: "Session",
        context_id: str,
        options: Dict[str, Any],
        base_url: str = "",
    ):
        self.session = session
        self.context_id = context_id
        self.options = options
        self.base_url = base_url
        self._pages: List[PageController] = []
        self._closed = False

    def __repr__(self) -> str:
        return f"<Context {self.context_id} pages={len(self._pages)}>"

    async def __aenter__(self) -> "Context":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed or self.session.closed

    @property
    def pages(self) -> List[PageController]:
        return list(self._pages)

    async def new_page(self) -> PageController:
        """Open a new page in this context."""
        if self.closed:
            raise SessionClosedError(f"Context {self.context_id} is closed")

        page_id = await self.session.channel.request(
            Command.NEW_PAGE, context_id=self.context_id
        )
        config = self.session.config
        page = PageController(
            self,
            page_id,
            timeouts=config.timeouts,
            selectors=config.selectors,
            base_url=self.base_url,
        )
        self._pages.append(page)
        return page

    def forget_page(self, page: PageController) -> None:
        if page in self._pages:
            self._pages.remove(page)

    async def close(self) -> None:
        """Close the context and every page in it. Idempotent."""
        if self.closed:
            self._closed = True
            return
        self._closed = True
        self._pages.clear()
        self.session.forget_context(self)
        await self.session.channel.request(Command.CLOSE_CONTEXT, context_id=self.context_id)
        logger.debug(f"Context closed: {self.context_id}")


class Session:
    """
    One browser process.

    Closing a Session releases every descendant Context and Page; any
    later operation on them raises SessionClosedError.
    """

    def __init__(self, channel: ControlChannel, config: PageTestConfig, browser_id: str):
        self.channel = channel
        self.config = config
        self.browser_id = browser_id
        self._contexts: List[Context] = []
        self._closed = False

    def __repr__(self) -> str:
        return f"<Session {self.browser_id} engine={self.config.browser.engine} closed={self._closed}>"

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def contexts(self) -> List[Context]:
        return list(self._contexts)

    async def new_context(self, **options: Any) -> Context:
        """
        Create new browser context.

        Each context is isolated - separate cookies, localStorage, etc.

        Args:
            **options: Context options overriding the configured ones;
                `base_url` overrides the configured base URL.
        """
        if self._closed:
            raise SessionClosedError(f"Session {self.browser_id} is closed")

        base_url = options.pop("base_url", self.config.base_url)
        context_options = {**self.config.context.to_options(), **options}
        context_id = await self.channel.request(Command.NEW_CONTEXT, options=context_options)

        context = Context(self, context_id, context_options, base_url=base_url)
        self._contexts.append(context)
        return context

    async def new_page(self, **options: Any) -> PageController:
        """Open a page in a fresh context."""
        context = await self.new_context(**options)
        return await context.new_page()

    def forget_context(self, context: Context) -> None:
        if context in self._contexts:
            self._contexts.remove(context)

    async def close(self) -> None:
        """Close all contexts, the browser and the channel. Idempotent."""
        if self._closed:
            return

        for context in list(self._contexts):
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Failed to close context {context.context_id}: {e}")
        self._contexts.clear()
        self._closed = True

        try:
            await self.channel.close()
        except Exception as e:
            logger.warning(f"Failed to close browser channel: {e}")

        logger.debug(f"Session closed: {self.browser_id}")


class SessionManager:
    """
    Launches and tears down browser Sessions.

    Usage:
        manager = SessionManager()
        session = await manager.launch(PageTestConfig.load())
        context = await manager.new_context(session)
        page = await context.new_page()
        await manager.close(session)

        # Or scoped
        async with await manager.launch(config) as session:
            page = await session.new_page()
    """

    def __init__(self, channel_factory: Optional[ChannelFactory] = None):
        """
        Args:
            channel_factory: Builds one control channel per launch
                (defaults to PlaywrightChannel)
        """
        self.channel_factory = channel_factory or PlaywrightChannel

    async def launch(self, config: Optional[PageTestConfig] = None) -> Session:
        """
        Start a browser.

        Raises:
            LaunchError: If the browser does not start, or the handshake does
                not complete within `browser.launch_timeout_ms`
        """
        config = config or PageTestConfig.load()
        browser = config.browser
        channel = self.channel_factory()

        try:
            browser_id = await asyncio.wait_for(
                channel.request(
                    Command.LAUNCH,
                    engine=browser.engine,
                    headless=browser.headless,
                    args=list(browser.args),
                    slow_mo_ms=browser.slow_mo_ms,
                ),
                timeout=browser.launch_timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            await self._discard(channel)
            logger.error(f"Browser {browser.engine} did not start within {browser.launch_timeout_ms}ms")
            raise LaunchError(
                f"Browser {browser.engine} did not start within {browser.launch_timeout_ms}ms"
            ) from e
        except asyncio.CancelledError:
            await asyncio.shield(self._discard(channel))
            logger.debug(f"Launch of {browser.engine} cancelled, channel discarded")
            raise
        except Exception as e:
            await self._discard(channel)
            logger.error(f"Failed to launch {browser.engine}: {e}")
            raise LaunchError(f"Failed to launch {browser.engine}: {e}") from e

        logger.debug(f"Session started: {browser_id} ({browser.engine}, headless={browser.headless})")
        return Session(channel, config, browser_id)

    async def new_context(self, session: Session, **options: Any) -> Context:
        return await session.new_context(**options)

    async def close(self, session: Session) -> None:
        await session.close()

    @staticmethod
    async def _discard(channel: ControlChannel) -> None:
        try:
            await channel.close()
        except Exception as e:
            logger.debug(f"Ignoring error while discarding channel: {e}")


__all__ = [
    "SessionManager",
    "Session",
    "Context",
]
