"""Per-level extraction of the component catalog hierarchy.

Category and section listings are parsed from the rendered page HTML with
BeautifulSoup, so they are plain functions of ``(html, page_url)``. Component
code is only readable after a client-side reveal action, so that level drives
each component block through page locators: click the code view control,
wait according to the reveal policy, then read the code element.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

from core.url_prefix import find_url_base_path
from utils.error_handling import EvaluationError

logger = logging.getLogger(__name__)

REVEAL_FIXED_DELAY = "fixed_delay"
REVEAL_CONDITION = "condition"


@dataclass(frozen=True)
class CatalogSelectors:
    """CSS selectors describing the catalog's page structure."""

    category_section: str = 'nav ~ section[id^="product-"]'
    category_heading: str = "h2"
    category_links: str = "li a"
    section_block: str = 'nav ~ div > section[id^="product-"]'
    section_heading: str = "h3"
    section_items: str = "li :is(p:first-child, a)"
    component_block: str = 'nav ~ div > section[id^="component-"]'
    component_heading: str = "h2"
    reveal_button: str = "div:has(> button:first-child + button:last-child) > button:last-child"
    code_block: str = "pre code"


@dataclass(frozen=True)
class RevealPolicy:
    """How long to wait after triggering a component's code view.

    ``fixed_delay`` sleeps ``settle_delay_ms`` after the click. ``condition``
    polls until the code element holds text, up to ``condition_timeout_ms``.
    """

    strategy: str = REVEAL_FIXED_DELAY
    settle_delay_ms: int = 250
    condition_timeout_ms: int = 5_000
    poll_interval_ms: int = 50

    @classmethod
    def from_settings(cls, settings: Any) -> "RevealPolicy":
        return cls(
            strategy=settings.reveal_strategy,
            settle_delay_ms=settings.settle_delay_ms,
            condition_timeout_ms=settings.condition_timeout_ms,
        )


@dataclass
class ComponentExtraction:
    """Components read from one group page, plus the blocks that failed."""

    components: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def add(self, name: str, code: str) -> None:
        if name in self.components:
            logger.debug("Duplicate component name %r, keeping the later block", name)
        self.components[name] = code


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _heading_text(element, selector: str, *, where: str) -> str:
    heading = element.select_one(selector)
    if heading is None:
        raise EvaluationError(
            f"Missing {selector} heading in {where}",
            {"selector": selector, "element_id": element.get("id")},
        )
    return heading.get_text().strip()


def extract_categories(
    html: str, page_url: str, selectors: Optional[CatalogSelectors] = None
) -> Dict[str, str]:
    """Map each top-level category heading to the shared base path of its links."""
    selectors = selectors or CatalogSelectors()
    soup = _soup(html)
    categories: Dict[str, str] = {}
    for section in soup.select(selectors.category_section):
        name = _heading_text(section, selectors.category_heading, where="category section")
        hrefs = [
            urljoin(page_url, anchor["href"])
            for anchor in section.select(selectors.category_links)
            if anchor.get("href")
        ]
        categories[name] = find_url_base_path(hrefs)
    logger.debug("Found %d categories on %s", len(categories), page_url)
    return categories


def _pair_labels_and_links(items: List[Any], page_url: str) -> Dict[str, str]:
    entries: Dict[str, str] = {}
    if len(items) % 2:
        logger.debug("Ignoring unpaired trailing item %r", items[-1].get_text().strip())
    for first, second in zip(items[0::2], items[1::2]):
        if first.name == "a" and second.name != "a":
            link, label = first, second
        elif second.name == "a" and first.name != "a":
            link, label = second, first
        else:
            raise EvaluationError(
                "Group listing is not a run of label/link pairs",
                {"first": first.name, "second": second.name},
            )
        entries[label.get_text().strip()] = urljoin(page_url, link.get("href", ""))
    return entries


def extract_sections(
    html: str, page_url: str, selectors: Optional[CatalogSelectors] = None
) -> Dict[str, Dict[str, str]]:
    """Map each section heading to its ``{group name: group url}`` listing."""
    selectors = selectors or CatalogSelectors()
    soup = _soup(html)
    sections: Dict[str, Dict[str, str]] = {}
    for section in soup.select(selectors.section_block):
        name = _heading_text(section, selectors.section_heading, where="section")
        sections[name] = _pair_labels_and_links(section.select(selectors.section_items), page_url)
    logger.debug("Found %d sections on %s", len(sections), page_url)
    return sections


class HierarchyExtractor:
    """Runs the per-level extractors against a loaded page."""

    def __init__(
        self,
        reveal_policy: Optional[RevealPolicy] = None,
        selectors: Optional[CatalogSelectors] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.reveal_policy = reveal_policy or RevealPolicy()
        self.selectors = selectors or CatalogSelectors()
        self.logger = logger or logging.getLogger(__name__)

    async def categories(self, navigator) -> Dict[str, str]:
        html = await navigator.content()
        return extract_categories(html, navigator.url, self.selectors)

    async def sections(self, navigator) -> Dict[str, Dict[str, str]]:
        html = await navigator.content()
        return extract_sections(html, navigator.url, self.selectors)

    async def components(self, navigator) -> ComponentExtraction:
        """Reveal and read every component block on the current page.

        Blocks are handled one at a time and independently: a block with no
        heading, no code view control or no code after the reveal is recorded
        in ``failures`` and its siblings are still read.
        """
        blocks = navigator.locator(self.selectors.component_block)
        try:
            count = await blocks.count()
        except PlaywrightError as exc:
            raise EvaluationError(
                f"Unable to list component blocks: {exc.message}", {"url": navigator.url}
            ) from exc

        extraction = ComponentExtraction()
        for index in range(count):
            name: Optional[str] = None
            try:
                block = blocks.nth(index)
                name = await self._block_name(block)
                extraction.add(name, await self._reveal_code(navigator, block))
            except EvaluationError as exc:
                extraction.failures[name or f"#{index}"] = str(exc)
            except PlaywrightError as exc:
                extraction.failures[name or f"#{index}"] = exc.message

        self.logger.debug(
            "Read %d components from %s (%d failed)",
            len(extraction.components),
            navigator.url,
            len(extraction.failures),
        )
        return extraction

    async def _block_name(self, block) -> str:
        heading = block.locator(self.selectors.component_heading).first
        if await heading.count() == 0:
            raise EvaluationError("component heading not found")
        return (await heading.text_content() or "").strip()

    async def _reveal_code(self, navigator, block) -> str:
        button = block.locator(self.selectors.reveal_button).first
        if await button.count() == 0:
            raise EvaluationError("code view control not found")
        await button.click(timeout=self.reveal_policy.condition_timeout_ms)

        code = block.locator(self.selectors.code_block).first
        if self.reveal_policy.strategy == REVEAL_CONDITION:
            return await self._wait_for_code(navigator, code)

        await navigator.pause(self.reveal_policy.settle_delay_ms)
        if await code.count() == 0:
            raise EvaluationError("code element not found after reveal")
        return await code.text_content() or ""

    async def _wait_for_code(self, navigator, code) -> str:
        policy = self.reveal_policy
        attempts = max(1, math.ceil(policy.condition_timeout_ms / policy.poll_interval_ms))
        for _ in range(attempts):
            if await code.count():
                text = await code.text_content()
                if text:
                    return text
            await navigator.pause(policy.poll_interval_ms)
        raise EvaluationError(
            f"code view did not render within {policy.condition_timeout_ms}ms"
        )
