"""Shared fixtures and fakes for harvester tests."""

from pathlib import Path
import sys
from typing import Any, Dict, List, Optional

import pytest
from playwright.async_api import Error as PlaywrightError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.extractors import CatalogSelectors  # noqa: E402

_SELECTORS = CatalogSelectors()
_CHILD_PARTS = {
    _SELECTORS.component_heading: "heading",
    _SELECTORS.reveal_button: "button",
    _SELECTORS.code_block: "code",
}


class FakeBlock:
    """A component block whose code element only renders some pauses after its control is clicked."""

    def __init__(
        self,
        name: Optional[str],
        code: Optional[str] = "",
        has_button: bool = True,
        render_after: int = 1,
        click_error: Optional[Exception] = None,
    ) -> None:
        self.name = name
        self.code = code
        self.has_button = has_button
        self.render_after = render_after
        self.click_error = click_error
        self.reset()

    def reset(self) -> None:
        self.clicked = False
        self.ticks = 0

    @property
    def rendered(self) -> bool:
        return self.clicked and self.code is not None and self.ticks >= self.render_after


class FakeLocator:
    """Subset of the Playwright locator API over the fake component blocks."""

    def __init__(self, page: "FakePage", part: str = "block", index: Optional[int] = None) -> None:
        self.page = page
        self.part = part
        self.index = index

    @property
    def first(self) -> "FakeLocator":
        return self.nth(0) if self.index is None else self

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.page, self.part, index)

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(self.page, _CHILD_PARTS[selector], self.index)

    def _block(self) -> FakeBlock:
        blocks = self.page.blocks()
        if self.index is None or self.index >= len(blocks):
            raise PlaywrightError("element is not attached to the DOM")
        return blocks[self.index]

    async def count(self) -> int:
        if self.part == "block" and self.index is None:
            return len(self.page.blocks())
        block = self._block()
        present = {
            "block": True,
            "heading": block.name is not None,
            "button": block.has_button,
            "code": block.rendered,
        }[self.part]
        return int(present)

    async def text_content(self, timeout: Optional[float] = None) -> Optional[str]:
        block = self._block()
        if self.part == "heading":
            return block.name
        self.page.site.events.append(("read", block.name))
        return block.code if block.rendered else None

    async def click(self, timeout: Optional[float] = None) -> None:
        block = self._block()
        if block.click_error is not None:
            raise block.click_error
        self.page.site.events.append(("click", block.name))
        block.clicked = True


class FakePage:
    """Stands in for a Playwright page, serving canned content per URL."""

    def __init__(self, site: "FakeSite") -> None:
        self.site = site
        self.url = "about:blank"
        self.history: List[str] = []
        self.closed = False

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None):
        self.site.visits.append(url)
        failure = self.site.goto_failures.get(url)
        if failure is not None:
            raise failure
        self.history.append(self.url)
        self.url = url
        for block in self.blocks():
            block.reset()
        return object()

    async def go_back(self, wait_until: str = "load", timeout: Optional[float] = None):
        if self.site.go_back_failure is not None:
            raise self.site.go_back_failure
        self.url = self.history.pop() if self.history else "about:blank"
        return object()

    async def content(self) -> str:
        return self.site.pages.get(self.url, "<html></html>")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        failure = self.site.evaluate_failures.get(self.url)
        if failure is not None:
            raise failure
        return None

    def blocks(self) -> List[FakeBlock]:
        return self.site.blocks.get(self.url, [])

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self)

    async def wait_for_timeout(self, timeout: float) -> None:
        self.site.events.append(("pause", timeout))
        for block in self.blocks():
            if block.clicked:
                block.ticks += 1

    async def wait_for_function(self, expression: str, arg: Any = None, timeout: Optional[float] = None):
        if self.site.wait_failure is not None:
            raise self.site.wait_failure
        return True

    async def close(self) -> None:
        self.closed = True


class FakeSite:
    """Canned catalog site: HTML per listing URL and component blocks per group URL."""

    def __init__(self) -> None:
        self.pages: Dict[str, str] = {}
        self.blocks: Dict[str, List[FakeBlock]] = {}
        self.events: List[tuple] = []
        self.goto_failures: Dict[str, Exception] = {}
        self.evaluate_failures: Dict[str, Exception] = {}
        self.go_back_failure: Optional[Exception] = None
        self.wait_failure: Optional[Exception] = None
        self.visits: List[str] = []


class FakeSession:
    """Mimics BrowserSession for orchestrator and authenticator tests."""

    def __init__(self, site: Optional[FakeSite] = None, cookies: Optional[List[Dict[str, Any]]] = None) -> None:
        self.site = site or FakeSite()
        self.pages: List[FakePage] = []
        self.added_cookies: List[Dict[str, Any]] = []
        self._cookies = cookies or []
        self.headless: Optional[bool] = None
        self.closed = False

    async def new_page(self) -> FakePage:
        page = FakePage(self.site)
        self.pages.append(page)
        return page

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.added_cookies.extend(cookies)

    async def cookies(self) -> List[Dict[str, Any]]:
        return list(self._cookies)

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True


@pytest.fixture
def fake_site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def fake_session(fake_site: FakeSite) -> FakeSession:
    return FakeSession(fake_site)
