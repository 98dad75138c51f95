"""
================================================================================
Static Site Channel
================================================================================

Offline control channel backed by BeautifulSoup documents.

Serves a fixed map of URL -> HTML so the core can be exercised without a
real browser. It supports just enough browser behavior for the unit suite:

    - Navigation latency, DNS failures and 404s
    - Timed document mutations (e.g. a title that changes after 500ms)
    - CSS engine (soupsieve, with :has-text() mapped to :-soup-contains())
    - Text engine (deepest matching element, substring or exact)
    - Visibility from the hidden attribute and inline display/visibility
    - click: follows links, selects tabs, reveals data-reveal targets
    - fill: sets the value of inputs, reveals data-reveal targets
    - A small table of evaluable scripts

================================================================================
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from pagetest.channel.base import Command, ControlChannel, Handler
from pagetest.errors import ChannelError


CLOSED_MESSAGE = "Target page, context or browser has been closed"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

NOT_FOUND_HTML = "<html><head><title>Page Not Found</title></head><body><h1>404</h1></body></html>"

_HIDDEN_STYLE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)
_HAS_TEXT = re.compile(r":has-text\(")
_THROW = re.compile(r"throw\s+(?:new\s+Error\()?\s*['\"]([^'\"]*)['\"]")
_IGNORED_TEXT_TAGS = {"html", "head", "title", "script", "style", "meta", "link"}

Mutation = Callable[[BeautifulSoup], None]
Script = Callable[["Document", Any], Any]


@dataclass
class SitePage:
    """One served URL."""
    html: str
    delay: float = 0.0
    status: int = 200
    mutations: Sequence[Tuple[float, Mutation]] = ()


@dataclass
class Document:
    url: str
    soup: BeautifulSoup
    loaded_at: float
    pending: List[Tuple[float, Mutation]] = field(default_factory=list)

    def refresh(self, now: float) -> None:
        """Apply every mutation whose delay has elapsed."""
        due = [m for m in self.pending if self.loaded_at + m[0] <= now]
        for mutation in due:
            mutation[1](self.soup)
            self.pending.remove(mutation)


def set_title(title: str) -> Mutation:
    def mutate(soup: BeautifulSoup) -> None:
        soup.title.string = title
    return mutate


def normalize_url(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path or '/'}"


def _evaluate_title(document: Document, arg: Any) -> Any:
    return document.soup.title.string if document.soup.title else ""


def _evaluate_href(document: Document, arg: Any) -> Any:
    return document.url


DEFAULT_SCRIPTS: Dict[str, Script] = {
    "document.title": _evaluate_title,
    "() => document.title": _evaluate_title,
    "location.href": _evaluate_href,
    "window.location.href": _evaluate_href,
    "window.scrollTo(0, document.body.scrollHeight)": lambda document, arg: None,
    "(value) => value": lambda document, arg: arg,
}


class StaticSiteChannel(ControlChannel):
    """
    ControlChannel serving static HTML documents.

    Usage:
        channel = StaticSiteChannel({"https://example.test/": SitePage("<html>...</html>")})
        manager = SessionManager(channel_factory=lambda: channel)
    """

    def __init__(
        self,
        sites: Dict[str, SitePage],
        scripts: Optional[Dict[str, Script]] = None,
        fail_launch: bool = False,
        launch_delay: float = 0.0,
    ) -> None:
        self.sites = {normalize_url(url): page for url, page in sites.items()}
        self.hosts = {urlparse(url).netloc for url in self.sites}
        self.scripts = {**DEFAULT_SCRIPTS, **(scripts or {})}
        self.fail_launch = fail_launch
        self.launch_delay = launch_delay

        self.launched = False
        self.closed = False
        self.requests: List[Command] = []
        self.contexts: Dict[str, Set[str]] = {}
        self.closed_contexts: List[str] = []
        self.documents: Dict[str, Document] = {}
        self._elements: Dict[str, Dict[str, Tag]] = {}
        self._element_ids: Dict[str, Dict[int, str]] = {}
        self._counter = 0
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

    async def request(self, command: Command, **params: Any) -> Any:
        self.requests.append(command)
        if self.closed and command is not Command.CLOSE:
            raise ChannelError(CLOSED_MESSAGE, command=str(command))
        return await super().request(command, **params)

    @property
    def open_contexts(self) -> List[str]:
        return list(self.contexts)

    def _next_id(self, kind: str) -> str:
        self._counter += 1
        return f"{kind}@{self._counter}"

    @staticmethod
    def _now() -> float:
        return asyncio.get_running_loop().time()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _launch(self, engine: str, headless: bool = True, args=None, slow_mo_ms: int = 0) -> str:
        if self.launch_delay:
            await asyncio.sleep(self.launch_delay)
        if self.fail_launch:
            raise ChannelError(f"Executable doesn't exist for {engine}")
        self.launched = True
        return self._next_id("browser")

    async def _new_context(self, options: Optional[Dict[str, Any]] = None) -> str:
        context_id = self._next_id("context")
        self.contexts[context_id] = set()
        return context_id

    async def _new_page(self, context_id: str) -> str:
        if context_id not in self.contexts:
            raise ChannelError(CLOSED_MESSAGE)
        page_id = self._next_id("page")
        self.contexts[context_id].add(page_id)
        self.documents[page_id] = Document(
            "about:blank", BeautifulSoup("<html><head><title></title></head><body></body></html>", "html.parser"), self._now()
        )
        self._forget_elements(page_id)
        return page_id

    async def _close_page(self, page_id: str) -> None:
        self.documents.pop(page_id, None)
        self._elements.pop(page_id, None)
        self._element_ids.pop(page_id, None)
        for pages in self.contexts.values():
            pages.discard(page_id)

    async def _close_context(self, context_id: str) -> None:
        for page_id in self.contexts.pop(context_id, set()):
            await self._close_page(page_id)
        self.closed_contexts.append(context_id)

    async def _close(self) -> None:
        for context_id in list(self.contexts):
            await self._close_context(context_id)
        self.closed = True

    # =========================================================================
    # Document
    # =========================================================================

    def _document(self, page_id: str) -> Document:
        document = self.documents.get(page_id)
        if document is None:
            raise ChannelError(CLOSED_MESSAGE)
        document.refresh(self._now())
        return document

    def _load(self, page_id: str, url: str) -> Dict[str, Any]:
        key = normalize_url(url)
        site = self.sites.get(key)
        if site is None:
            status, html, mutations = 404, NOT_FOUND_HTML, ()
        else:
            status, html, mutations = site.status, site.html, site.mutations
        self.documents[page_id] = Document(
            key, BeautifulSoup(html, "html.parser"), self._now(), list(mutations)
        )
        self._forget_elements(page_id)
        return {"url": key, "status": status}

    async def _navigate(self, page_id: str, url: str, wait_until: str = "load") -> Dict[str, Any]:
        self._document(page_id)
        if urlparse(url).netloc not in self.hosts:
            raise ChannelError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        site = self.sites.get(normalize_url(url))
        if site is not None and site.delay:
            await asyncio.sleep(site.delay)
        self._document(page_id)
        return self._load(page_id, url)

    async def _evaluate(self, page_id: str, script: str, arg: Any = None) -> Any:
        document = self._document(page_id)
        thrown = _THROW.search(script)
        if thrown:
            raise ChannelError(f"Error: {thrown.group(1)}")
        evaluator = self.scripts.get(script.strip())
        if evaluator is None:
            raise ChannelError(f"ReferenceError: cannot evaluate {script.strip()!r}")
        return evaluator(document, arg)

    async def _get_title(self, page_id: str) -> str:
        return _evaluate_title(self._document(page_id), None) or ""

    async def _get_url(self, page_id: str) -> str:
        return self._document(page_id).url

    async def _screenshot(self, page_id: str, full_page: bool = False) -> bytes:
        return PNG_SIGNATURE + self._document(page_id).url.encode("utf-8")

    # =========================================================================
    # Elements
    # =========================================================================

    async def _query_selector(
        self,
        page_id: str,
        engine: str,
        selector: str,
        scope: Optional[List[str]] = None,
    ) -> List[str]:
        document = self._document(page_id)
        roots = [document.soup] if scope is None else [
            self._require_element(page_id, element_id) for element_id in scope
        ]

        found: Dict[int, Tag] = {}
        for root in roots:
            for tag in self._select(root, engine, selector):
                found.setdefault(id(tag), tag)

        order = {id(tag): i for i, tag in enumerate(document.soup.find_all(True))}
        ordered = sorted(found.values(), key=lambda tag: order.get(id(tag), 0))
        return [self._register(page_id, tag) for tag in ordered]

    def _select(self, root: Any, engine: str, selector: str) -> List[Tag]:
        if engine == "css":
            try:
                return root.select(_HAS_TEXT.sub(":-soup-contains(", selector))
            except SelectorSyntaxError as e:
                raise ChannelError(f"Unexpected token in selector {selector!r}: {e}") from e
        if engine == "text":
            return _select_text(root, selector)
        raise ChannelError(f"Unknown engine \"{engine}\" while parsing selector {engine}={selector}")

    async def _get_attribute(self, page_id: str, element_id: str, name: str) -> Optional[str]:
        value = self._require_element(page_id, element_id).get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def _get_text(self, page_id: str, element_id: str) -> Optional[str]:
        return self._require_element(page_id, element_id).get_text()

    async def _is_visible(self, page_id: str, element_id: str) -> bool:
        return _visible(self._require_element(page_id, element_id))

    async def _click(self, page_id: str, element_id: str, timeout_ms: int = 5000) -> None:
        tag = self._require_actionable(page_id, element_id)
        document = self._document(page_id)

        if tag.get("role") == "tab" and tag.parent is not None:
            for sibling in tag.parent.find_all(attrs={"role": "tab"}, recursive=False):
                sibling["aria-selected"] = "false"
            tag["aria-selected"] = "true"
        _reveal(document.soup, tag)

        href = tag.get("href")
        if tag.name == "a" and href and not href.startswith("#"):
            self._load(page_id, urljoin(document.url, href))

    async def _fill(self, page_id: str, element_id: str, value: str, timeout_ms: int = 5000) -> None:
        tag = self._require_actionable(page_id, element_id)
        if tag.name not in ("input", "textarea"):
            raise ChannelError("Error: Element is not an <input>, <textarea> or [contenteditable] element")
        tag["value"] = value
        _reveal(self._document(page_id).soup, tag)

    # =========================================================================
    # Registry
    # =========================================================================

    def _register(self, page_id: str, tag: Tag) -> str:
        ids = self._element_ids.setdefault(page_id, {})
        element_id = ids.get(id(tag))
        if element_id is None:
            element_id = f"{page_id}/{self._next_id('element')}"
            ids[id(tag)] = element_id
            self._elements.setdefault(page_id, {})[element_id] = tag
        return element_id

    def _require_element(self, page_id: str, element_id: str) -> Tag:
        self._document(page_id)
        tag = self._elements.get(page_id, {}).get(element_id)
        if tag is None:
            raise ChannelError("Element is not attached to the DOM")
        return tag

    def _require_actionable(self, page_id: str, element_id: str) -> Tag:
        tag = self._require_element(page_id, element_id)
        if not _visible(tag):
            raise ChannelError("element is not visible")
        return tag

    def _forget_elements(self, page_id: str) -> None:
        self._elements[page_id] = {}
        self._element_ids[page_id] = {}


def _normalize(text: str) -> str:
    return " ".join(text.split())


def _select_text(root: Any, body: str) -> List[Tag]:
    if len(body) >= 2 and body[0] == body[-1] and body[0] in ("'", '"'):
        wanted = json.loads(body) if body[0] == '"' else body[1:-1]
        matcher = lambda text: text == wanted
    else:
        needle = _normalize(body).lower()
        matcher = lambda text: needle in text.lower()

    candidates = [
        tag for tag in root.find_all(True)
        if tag.name not in _IGNORED_TEXT_TAGS and matcher(_normalize(tag.get_text()))
    ]
    matched = {id(tag) for tag in candidates}
    # Keep the deepest matches only
    return [
        tag for tag in candidates
        if not any(id(child) in matched for child in tag.find_all(True))
    ]


def _visible(tag: Tag) -> bool:
    node: Optional[Tag] = tag
    while node is not None and node.name != "[document]":
        if node.has_attr("hidden"):
            return False
        if _HIDDEN_STYLE.search(node.get("style", "")):
            return False
        if node.name == "input" and node.get("type") == "hidden":
            return False
        node = node.parent
    return True


def _reveal(soup: BeautifulSoup, tag: Tag) -> None:
    target = tag.get("data-reveal")
    if not target:
        return
    for revealed in soup.select(target):
        if revealed.has_attr("hidden"):
            del revealed["hidden"]
        if revealed.has_attr("style"):
            revealed["style"] = _HIDDEN_STYLE.sub("", revealed["style"])


__all__ = [
    "StaticSiteChannel",
    "SitePage",
    "Document",
    "set_title",
    "normalize_url",
]
