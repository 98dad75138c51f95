"""
================================================================================
Locator
================================================================================

Lazy, re-resolvable element queries.

A Locator is an immutable description: a selector, an optional chain of
index narrowings (first / last / nth) and an optional parent Locator. It
holds no element references; every operation resolves it again against the
live document.

Selector grammar:
    css=nav a            CSS engine
    text=Get Started     text engine, case-insensitive substring
    text="Get Started"   text engine, exact match
    nav >> text=Docs     chain: text=Docs scoped to elements matching nav
    nav a                bare part, uses the configured default engine

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Tuple

import allure
from loguru import logger

from pagetest.channel.base import Command
from pagetest.errors import ElementNotFoundError, ExpectationFailed, StrictModeViolationError
from pagetest.polling import poll_until

if TYPE_CHECKING:
    from pagetest.page import PageController


ENGINES = ("css", "text")

_ENGINE_PREFIX = re.compile(r"^\s*(css|text)\s*=(.*)$", re.DOTALL)


@dataclass(frozen=True)
class Selector:
    """One selector part: an engine name and its query body."""
    engine: str
    body: str

    def __str__(self) -> str:
        return f"{self.engine}={self.body}"


def split_chain(selector: str) -> List[str]:
    """
    Split a selector on '>>' separators that are not quoted or bracketed.

    Raises:
        ValueError: On an empty part or unbalanced quotes/brackets
    """
    parts: List[str] = []
    current: List[str] = []
    quote: Optional[str] = None
    depth = 0
    i = 0
    while i < len(selector):
        char = selector[i]
        if quote:
            if char == "\\" and i + 1 < len(selector):
                current.append(selector[i:i + 2])
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
        elif depth == 0 and selector.startswith(">>", i):
            parts.append("".join(current).strip())
            current = []
            i += 2
            continue
        current.append(char)
        i += 1

    if quote or depth != 0:
        raise ValueError(f"Malformed selector: {selector!r}")
    parts.append("".join(current).strip())

    if any(not part for part in parts):
        raise ValueError(f"Malformed selector: {selector!r}")
    return parts


def parse_selector(selector: str, default_engine: str = "css") -> List[Selector]:
    """
    Parse a selector string into its chained parts.

    Args:
        selector: Selector string (see module docstring for the grammar)
        default_engine: Engine used for parts without an explicit prefix

    Returns:
        One Selector per '>>'-separated part
    """
    if default_engine not in ENGINES:
        raise ValueError(f"Unknown selector engine: {default_engine}")

    parsed: List[Selector] = []
    for part in split_chain(selector):
        match = _ENGINE_PREFIX.match(part)
        if match:
            engine, body = match.group(1), match.group(2).strip()
            if not body:
                raise ValueError(f"Malformed selector: {selector!r}")
        else:
            engine, body = default_engine, part
        parsed.append(Selector(engine, body))
    return parsed


def text_selector(text: str, exact: bool = False) -> Selector:
    """Build a text-engine selector; exact matching quotes the body."""
    return Selector("text", json.dumps(text) if exact else text)


@dataclass(frozen=True)
class ElementHandle:
    """
    One element from one resolution.

    Valid until the page navigates; prefer Locator operations, which
    re-resolve on every call.
    """
    page: "PageController" = field(repr=False, compare=False)
    element_id: str

    async def get_attribute(self, name: str) -> Optional[str]:
        return await self.page.request(
            Command.GET_ATTRIBUTE, element_id=self.element_id, name=name
        )

    async def text_content(self) -> Optional[str]:
        return await self.page.request(Command.GET_TEXT, element_id=self.element_id)

    async def is_visible(self) -> bool:
        return bool(await self.page.request(Command.IS_VISIBLE, element_id=self.element_id))

    async def click(self, timeout_ms: int = 5000) -> None:
        await self.page.request(Command.CLICK, element_id=self.element_id, timeout_ms=timeout_ms)

    async def fill(self, value: str, timeout_ms: int = 5000) -> None:
        await self.page.request(
            Command.FILL, element_id=self.element_id, value=value, timeout_ms=timeout_ms
        )


@dataclass(frozen=True)
class _Performed:
    value: Any = None


@dataclass(frozen=True)
class Locator:
    """
    Lazy reference to zero or more elements.

    Usage:
        >>> get_started = page.locator("text=Get Started")
        >>> await get_started.click()
        >>> link = page.locator("footer").locator("a[href*='github.com']").first
        >>> await link.get_attribute("href")
    """

    page: "PageController" = field(repr=False, compare=False)
    selector: Selector
    parent: Optional["Locator"] = None
    indices: Tuple[int, ...] = ()

    @classmethod
    def from_string(
        cls,
        page: "PageController",
        selector: str,
        parent: Optional["Locator"] = None,
    ) -> "Locator":
        """Build a (possibly chained) Locator from a selector string."""
        locator = parent
        for part in parse_selector(selector, page.selectors.default_engine):
            locator = cls(page=page, selector=part, parent=locator)
        return locator

    def __str__(self) -> str:
        parts = [str(self.selector)]
        parts.extend(f"nth={i}" for i in self.indices)
        own = " >> ".join(parts)
        if self.parent is None:
            return own
        return f"{self.parent} >> {own}"

    # =========================================================================
    # Derivation (never resolves)
    # =========================================================================

    @property
    def first(self) -> "Locator":
        """Narrow to the first match."""
        return self.nth(0)

    @property
    def last(self) -> "Locator":
        """Narrow to the last match."""
        return self.nth(-1)

    def nth(self, index: int) -> "Locator":
        """Narrow to the match at `index` (negative counts from the end)."""
        return replace(self, indices=self.indices + (index,))

    def locator(self, selector: str) -> "Locator":
        """Chain: match `selector` inside the elements this locator matches."""
        return Locator.from_string(self.page, selector, parent=self)

    def get_by_text(self, text: str, exact: bool = False) -> "Locator":
        return Locator(page=self.page, selector=text_selector(text, exact), parent=self)

    # =========================================================================
    # Resolution
    # =========================================================================

    async def resolve(self) -> List[ElementHandle]:
        """
        Query the live document for the current matches, in document order.

        Returns an empty list when nothing matches.
        """
        scope: Optional[List[str]] = None
        if self.parent is not None:
            parents = await self.parent.resolve()
            if not parents:
                return []
            scope = [handle.element_id for handle in parents]

        element_ids = await self.page.request(
            Command.QUERY_SELECTOR,
            engine=self.selector.engine,
            selector=self.selector.body,
            scope=scope,
        )
        handles = [ElementHandle(self.page, element_id) for element_id in element_ids]

        for index in self.indices:
            try:
                handles = [handles[index]]
            except IndexError:
                return []
        return handles

    async def count(self) -> int:
        return len(await self.resolve())

    async def is_visible(self) -> bool:
        """Check visibility right now, without waiting."""
        handles = await self.resolve()
        if not handles:
            return False
        self.check_strict(handles)
        return await handles[0].is_visible()

    def check_strict(self, handles: List[ElementHandle]) -> None:
        if len(handles) > 1 and not self.indices and self.page.selectors.strict:
            raise StrictModeViolationError(
                f"Strict mode violation: {self} resolved to {len(handles)} elements",
                selector=str(self),
                count=len(handles),
            )

    # =========================================================================
    # Actions
    # =========================================================================

    async def _perform(
        self,
        action_name: str,
        action: Callable[[ElementHandle, int], Awaitable[Any]],
        timeout_ms: Optional[int] = None,
    ) -> Any:
        """
        Wait for one matching element and run `action` on it.

        Resolution and the action are retried together, so a re-rendered
        element is picked up on the next attempt.

        Raises:
            ElementNotFoundError: Nothing matched before the timeout expired
            StrictModeViolationError: Several elements matched
        """
        timeout = self.page.timeouts.action_ms if timeout_ms is None else timeout_ms

        async def attempt() -> Optional[_Performed]:
            handles = await self.resolve()
            if not handles:
                return None
            self.check_strict(handles)
            return _Performed(await action(handles[0], timeout))

        try:
            performed = await poll_until(
                attempt,
                lambda outcome: outcome is not None,
                timeout_ms=timeout,
                poll_interval_ms=self.page.timeouts.poll_interval_ms,
                description=f"{action_name} {self}",
                expected="an attached element",
            )
        except ExpectationFailed as e:
            detail = f": {e.last_error}" if e.last_error else ""
            logger.error(f"{action_name} failed, no element for {self}{detail}")
            raise ElementNotFoundError(
                f"{action_name}: no element matching {self} after {timeout}ms{detail}",
                selector=str(self),
                timeout_ms=timeout,
            ) from e
        return performed.value

    async def click(self, timeout_ms: Optional[int] = None) -> None:
        with allure.step(f"Click: {self}"):
            await self._perform(
                "click", lambda handle, timeout: handle.click(timeout_ms=timeout), timeout_ms
            )

    async def fill(self, value: str, timeout_ms: Optional[int] = None) -> None:
        with allure.step(f"Fill {self}: {value}"):
            await self._perform(
                "fill", lambda handle, timeout: handle.fill(value, timeout_ms=timeout), timeout_ms
            )

    async def text_content(self, timeout_ms: Optional[int] = None) -> Optional[str]:
        return await self._perform(
            "text_content", lambda handle, timeout: handle.text_content(), timeout_ms
        )

    async def get_attribute(self, name: str, timeout_ms: Optional[int] = None) -> Optional[str]:
        return await self._perform(
            "get_attribute", lambda handle, timeout: handle.get_attribute(name), timeout_ms
        )

    async def wait_for(self, state: str = "visible", timeout_ms: Optional[int] = None) -> None:
        """
        Wait for the locator to reach `state`.

        Args:
            state: 'attached', 'detached', 'visible' or 'hidden'
            timeout_ms: Defaults to the action timeout
        """
        checks = {
            "attached": lambda s: s != "detached",
            "detached": lambda s: s == "detached",
            "visible": lambda s: s == "visible",
            "hidden": lambda s: s != "visible",
        }
        if state not in checks:
            raise ValueError(f"Unknown state: {state}")

        timeout = self.page.timeouts.action_ms if timeout_ms is None else timeout_ms
        await poll_until(
            self.visibility_state,
            checks[state],
            timeout_ms=timeout,
            poll_interval_ms=self.page.timeouts.poll_interval_ms,
            description=f"wait for {self} to be {state}",
            expected=state,
        )

    async def visibility_state(self) -> str:
        """Return 'detached', 'hidden' or 'visible' for the current match."""
        handles = await self.resolve()
        if not handles:
            return "detached"
        self.check_strict(handles)
        return "visible" if await handles[0].is_visible() else "hidden"


__all__ = [
    "Selector",
    "Locator",
    "ElementHandle",
    "parse_selector",
    "split_chain",
    "text_selector",
]
