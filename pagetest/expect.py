"""
================================================================================
Assertion Engine
================================================================================

Auto-retrying assertions for pages and locators.

Every assertion re-reads the live target until its predicate holds or the
timeout elapses, then fails with the expected value and the last observed
value.

Key Features:
- Page assertions: title, URL
- Locator assertions: visibility, attachment, attribute, text, count
- Negation through `.not_`
- Regex patterns (re.search) or exact strings
- Allure step per assertion

Example:
    await expect(page).to_have_title(re.compile("Playwright"))
    await expect(page.locator("text=Get Started")).to_have_attribute("href", "/docs/intro")
    await expect(page.locator(".DocSearch-Dropdown")).to_be_visible()

================================================================================
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Pattern, Union

import allure

from pagetest.errors import format_value
from pagetest.locator import Locator
from pagetest.page import PageController
from pagetest.polling import poll_until


Expected = Union[str, Pattern[str]]


def _normalize_whitespace(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return " ".join(value.split())


def matches(expected: Expected, actual: Optional[str]) -> bool:
    """Pattern -> re.search; string -> equality."""
    if actual is None:
        return False
    if isinstance(expected, re.Pattern):
        return expected.search(actual) is not None
    return actual == expected


def contains(expected: Expected, actual: Optional[str]) -> bool:
    """Pattern -> re.search; string -> substring."""
    if actual is None:
        return False
    if isinstance(expected, re.Pattern):
        return expected.search(actual) is not None
    return expected in actual


class _Assertions(ABC):
    """Shared polling logic for page and locator assertions."""

    def __init__(
        self,
        page: PageController,
        timeout_ms: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
        negate: bool = False,
    ):
        self._page = page
        self._timeout_ms = page.timeouts.expect_ms if timeout_ms is None else timeout_ms
        self._poll_interval_ms = (
            page.timeouts.poll_interval_ms if poll_interval_ms is None else poll_interval_ms
        )
        self._negate = negate

    @abstractmethod
    def _negated(self) -> "_Assertions":
        """Return a copy with `negate` flipped."""

    @property
    def not_(self):
        """The same assertions with every predicate inverted."""
        return self._negated()

    async def _expect(
        self,
        probe: Callable[[], Awaitable[Any]],
        predicate: Callable[[Any], bool],
        description: str,
        expected: Any,
    ) -> None:
        if self._negate:
            positive = predicate
            predicate = lambda observed: not positive(observed)
            description = f"not {description}"
            expected = f"not {format_value(expected)}"

        with allure.step(f"Expect {description}"):
            await poll_until(
                probe,
                predicate,
                timeout_ms=self._timeout_ms,
                poll_interval_ms=self._poll_interval_ms,
                description=description,
                expected=expected,
            )


class PageAssertions(_Assertions):
    """Assertions on a page's title and URL."""

    def _negated(self) -> "PageAssertions":
        return PageAssertions(
            self._page, self._timeout_ms, self._poll_interval_ms, negate=not self._negate
        )

    async def to_have_title(self, expected: Expected) -> None:
        await self._expect(
            self._page.title,
            lambda title: matches(expected, title),
            description="page title to match",
            expected=expected,
        )

    async def to_have_url(self, expected: Expected) -> None:
        if isinstance(expected, str):
            expected = self._page.resolve_url(expected)
        await self._expect(
            self._page.current_url,
            lambda url: matches(expected, url),
            description="page URL to match",
            expected=expected,
        )


class LocatorAssertions(_Assertions):
    """Assertions on the element(s) a locator resolves to."""

    def __init__(
        self,
        locator: Locator,
        timeout_ms: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
        negate: bool = False,
    ):
        super().__init__(locator.page, timeout_ms, poll_interval_ms, negate)
        self._locator = locator

    def _negated(self) -> "LocatorAssertions":
        return LocatorAssertions(
            self._locator, self._timeout_ms, self._poll_interval_ms, negate=not self._negate
        )

    async def to_be_visible(self) -> None:
        """Attached, non-zero size and not hidden via styling."""
        await self._expect(
            self._locator.visibility_state,
            lambda state: state == "visible",
            description=f"{self._locator} to be visible",
            expected="visible",
        )

    async def to_be_hidden(self) -> None:
        await self._expect(
            self._locator.visibility_state,
            lambda state: state != "visible",
            description=f"{self._locator} to be hidden",
            expected="hidden",
        )

    async def to_be_attached(self) -> None:
        await self._expect(
            self._locator.visibility_state,
            lambda state: state != "detached",
            description=f"{self._locator} to be attached",
            expected="attached",
        )

    async def to_have_attribute(self, name: str, expected: Expected) -> None:
        await self._expect(
            lambda: self._first_value(lambda handle: handle.get_attribute(name)),
            lambda value: matches(expected, value),
            description=f"{self._locator} to have attribute {name!r}",
            expected=expected,
        )

    async def to_have_text(self, expected: Expected) -> None:
        if isinstance(expected, str):
            wanted = _normalize_whitespace(expected)
            predicate = lambda text: _normalize_whitespace(text) == wanted
        else:
            predicate = lambda text: matches(expected, text)
        await self._expect(
            self._text,
            predicate,
            description=f"{self._locator} to have text",
            expected=expected,
        )

    async def to_contain_text(self, expected: Expected) -> None:
        if isinstance(expected, str):
            wanted = _normalize_whitespace(expected)
            predicate = lambda text: contains(wanted, _normalize_whitespace(text))
        else:
            predicate = lambda text: contains(expected, text)
        await self._expect(
            self._text,
            predicate,
            description=f"{self._locator} to contain text",
            expected=expected,
        )

    async def to_have_count(self, expected: int) -> None:
        await self._expect(
            self._locator.count,
            lambda count: count == expected,
            description=f"{self._locator} to have count",
            expected=expected,
        )

    async def _text(self) -> Optional[str]:
        return await self._first_value(lambda handle: handle.text_content())

    async def _first_value(self, read) -> Optional[str]:
        # Missing element reads as None so the poll keeps going.
        handles = await self._locator.resolve()
        if not handles:
            return None
        self._locator.check_strict(handles)
        return await read(handles[0])


def expect(
    target: Union[PageController, Locator],
    timeout_ms: Optional[int] = None,
    poll_interval_ms: Optional[int] = None,
) -> Union[PageAssertions, LocatorAssertions]:
    """
    Build assertions for a page or a locator.

    Args:
        target: PageController or Locator
        timeout_ms: Defaults to the configured expect timeout
        poll_interval_ms: Defaults to the configured poll interval
    """
    if isinstance(target, Locator):
        return LocatorAssertions(target, timeout_ms, poll_interval_ms)
    if isinstance(target, PageController):
        return PageAssertions(target, timeout_ms, poll_interval_ms)
    raise TypeError(f"Cannot build assertions for {type(target).__name__}")


__all__ = [
    "expect",
    "PageAssertions",
    "LocatorAssertions",
    "matches",
    "contains",
]
