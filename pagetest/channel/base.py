"""
================================================================================
Control Channel
================================================================================

Command/response abstraction over the browser-automation backend.

The core never touches a browser object directly. Every operation is a
command sent through a ControlChannel; browsers, contexts, pages and elements
are referred to by opaque string ids handed out by the channel.

Command parameters:
    launch          engine, headless, args, slow_mo_ms
    new_context     options
    new_page        context_id
    navigate        page_id, url, wait_until          -> {"url", "status"}
    evaluate        page_id, script, arg              -> value
    query_selector  page_id, engine, selector, scope  -> [element_id, ...]
    get_attribute   page_id, element_id, name         -> Optional[str]
    get_text        page_id, element_id               -> Optional[str]
    is_visible      page_id, element_id               -> bool
    click           page_id, element_id, timeout_ms
    fill            page_id, element_id, value, timeout_ms
    get_title       page_id                           -> str
    get_url         page_id                           -> str
    screenshot      page_id, full_page                -> bytes
    close_page      page_id
    close_context   context_id
    close

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict

from pagetest.errors import ChannelError


class Command(str, Enum):
    """Commands understood by every control channel."""
    LAUNCH = "launch"
    NEW_CONTEXT = "new_context"
    NEW_PAGE = "new_page"
    NAVIGATE = "navigate"
    EVALUATE = "evaluate"
    QUERY_SELECTOR = "query_selector"
    GET_ATTRIBUTE = "get_attribute"
    GET_TEXT = "get_text"
    IS_VISIBLE = "is_visible"
    CLICK = "click"
    FILL = "fill"
    GET_TITLE = "get_title"
    GET_URL = "get_url"
    SCREENSHOT = "screenshot"
    CLOSE_PAGE = "close_page"
    CLOSE_CONTEXT = "close_context"
    CLOSE = "close"


Handler = Callable[..., Awaitable[Any]]


class ControlChannel(ABC):
    """
    Base class for control channels.

    Subclasses register one coroutine per command in `handlers()`;
    `request()` dispatches to them. Backend failures must surface as
    ChannelError with the backend's message unchanged.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Command, Handler] = self.handlers()

    @abstractmethod
    def handlers(self) -> Dict[Command, Handler]:
        """Return the command -> coroutine dispatch table."""

    async def request(self, command: Command, **params: Any) -> Any:
        """
        Send one command and wait for its response.

        Raises:
            ChannelError: If the command is unknown or the backend fails
        """
        try:
            handler = self._handlers.get(Command(command))
        except ValueError:
            handler = None
        if handler is None:
            raise ChannelError(f"Unsupported command: {command}", command=str(command))
        return await handler(**params)

    async def close(self) -> None:
        """Release the transport. Safe to call more than once."""
        if Command.CLOSE in self._handlers:
            await self._handlers[Command.CLOSE]()


__all__ = [
    "Command",
    "ControlChannel",
]
