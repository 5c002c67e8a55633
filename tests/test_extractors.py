"""Tests for catalog level extraction from page HTML and component blocks."""

import pytest
from playwright.async_api import Error as PlaywrightError

from conftest import FakeBlock, FakePage, FakeSite
from core.extractors import (
    REVEAL_CONDITION,
    HierarchyExtractor,
    RevealPolicy,
    extract_categories,
    extract_sections,
)
from core.navigator import Navigator
from utils.error_handling import EvaluationError

ROOT_URL = "https://example.com/plus/ui-blocks"

ROOT_HTML = """
<html><body>
  <nav><a href="/plus">Home</a></nav>
  <section id="product-marketing">
    <h2>  Marketing </h2>
    <ul>
      <li><a href="/plus/ui-blocks/marketing/sections/heroes">Heroes</a></li>
      <li><a href="/plus/ui-blocks/marketing/elements/headers">Headers</a></li>
    </ul>
  </section>
  <section id="product-application-ui">
    <h2>Application UI</h2>
    <ul>
      <li><a href="/plus/ui-blocks/application-ui/forms/inputs">Inputs</a></li>
    </ul>
  </section>
  <section id="newsletter"><h2>Not a category</h2></section>
</body></html>
"""

CATEGORY_HTML = """
<html><body>
  <nav></nav>
  <div>
    <section id="product-marketing-sections">
      <h3>Page Sections</h3>
      <ul>
        <li><p>Hero Sections</p><a href="/plus/ui-blocks/marketing/sections/heroes">12 components</a></li>
        <li><p>Pricing</p><a href="pricing">5 components</a></li>
      </ul>
    </section>
    <section id="product-marketing-elements">
      <h3>Elements</h3>
      <ul></ul>
    </section>
  </div>
</body></html>
"""


class _StubNavigator:
    def __init__(self, html="", url=ROOT_URL):
        self.html = html
        self.url = url

    async def content(self):
        return self.html


class TestExtractCategories:
    def test_maps_heading_to_shared_link_prefix(self):
        categories = extract_categories(ROOT_HTML, ROOT_URL)
        assert categories == {
            "Marketing": "https://example.com/plus/ui-blocks/marketing/",
            "Application UI": "https://example.com/plus/ui-blocks/application-ui/forms/inputs",
        }

    def test_preserves_document_order(self):
        assert list(extract_categories(ROOT_HTML, ROOT_URL)) == ["Marketing", "Application UI"]

    def test_page_without_categories_yields_empty_mapping(self):
        assert extract_categories("<html><body><nav></nav></body></html>", ROOT_URL) == {}

    def test_missing_heading_raises(self):
        html = '<nav></nav><section id="product-x"><ul><li><a href="/a">A</a></li></ul></section>'
        with pytest.raises(EvaluationError):
            extract_categories(html, ROOT_URL)


class TestExtractSections:
    def test_pairs_labels_with_resolved_links(self):
        url = "https://example.com/plus/ui-blocks/marketing/"
        sections = extract_sections(CATEGORY_HTML, url)
        assert sections == {
            "Page Sections": {
                "Hero Sections": "https://example.com/plus/ui-blocks/marketing/sections/heroes",
                "Pricing": "https://example.com/plus/ui-blocks/marketing/pricing",
            },
            "Elements": {},
        }

    def test_link_first_ordering_is_paired_by_element_type(self):
        html = """
        <nav></nav><div><section id="product-x"><h3>S</h3><ul>
          <li><a href="/g">link text</a></li><li><p>Group</p></li>
        </ul></section></div>
        """
        # The <p> is first-child of its own <li>, so it still counts as a label.
        assert extract_sections(html, ROOT_URL) == {"S": {"Group": "https://example.com/g"}}

    def test_two_links_in_a_row_are_rejected(self):
        html = """
        <nav></nav><div><section id="product-x"><h3>S</h3><ul>
          <li><a href="/a">A</a></li><li><a href="/b">B</a></li>
        </ul></section></div>
        """
        with pytest.raises(EvaluationError):
            extract_sections(html, ROOT_URL)


GROUP_URL = "https://example.com/plus/ui-blocks/marketing/sections/heroes"


async def _group_navigator(blocks):
    site = FakeSite()
    site.blocks[GROUP_URL] = blocks
    navigator = Navigator(FakePage(site))
    await navigator.navigate(GROUP_URL)
    return site, navigator


class TestComponents:
    @pytest.mark.asyncio
    async def test_reads_code_after_reveal(self):
        _, navigator = await _group_navigator(
            [FakeBlock("Simple", "<div>simple</div>"), FakeBlock("Centered", "<div>centered</div>")]
        )

        extraction = await HierarchyExtractor().components(navigator)

        assert extraction.ok
        assert extraction.components == {
            "Simple": "<div>simple</div>",
            "Centered": "<div>centered</div>",
        }

    @pytest.mark.asyncio
    async def test_settle_delay_runs_between_click_and_read(self):
        site, navigator = await _group_navigator([FakeBlock("Simple", "<div/>")])

        await HierarchyExtractor(RevealPolicy(settle_delay_ms=400)).components(navigator)

        assert site.events == [("click", "Simple"), ("pause", 400), ("read", "Simple")]

    @pytest.mark.asyncio
    async def test_block_without_control_does_not_hide_siblings(self):
        _, navigator = await _group_navigator(
            [
                FakeBlock("Before", "<b/>"),
                FakeBlock("Broken", "<x/>", has_button=False),
                FakeBlock("After", "<a/>"),
            ]
        )

        extraction = await HierarchyExtractor().components(navigator)

        assert extraction.components == {"Before": "<b/>", "After": "<a/>"}
        assert extraction.failures == {"Broken": "code view control not found"}
        assert not extraction.ok

    @pytest.mark.asyncio
    async def test_missing_heading_and_click_errors_are_per_block(self):
        _, navigator = await _group_navigator(
            [
                FakeBlock(None, "<x/>"),
                FakeBlock("Stuck", "<y/>", click_error=PlaywrightError("element is not visible")),
                FakeBlock("Fine", "<z/>"),
            ]
        )

        extraction = await HierarchyExtractor().components(navigator)

        assert extraction.components == {"Fine": "<z/>"}
        assert extraction.failures == {
            "#0": "component heading not found",
            "Stuck": "element is not visible",
        }

    @pytest.mark.asyncio
    async def test_fixed_delay_fails_block_that_renders_late(self):
        _, navigator = await _group_navigator([FakeBlock("Slow", "<div/>", render_after=3)])

        extraction = await HierarchyExtractor().components(navigator)

        assert extraction.failures == {"Slow": "code element not found after reveal"}

    @pytest.mark.asyncio
    async def test_condition_strategy_waits_for_late_render(self):
        site, navigator = await _group_navigator([FakeBlock("Slow", "<div/>", render_after=3)])
        policy = RevealPolicy(strategy=REVEAL_CONDITION, condition_timeout_ms=500, poll_interval_ms=50)

        extraction = await HierarchyExtractor(policy).components(navigator)

        assert extraction.components == {"Slow": "<div/>"}
        assert [event for event in site.events if event[0] == "pause"] == [("pause", 50)] * 3

    @pytest.mark.asyncio
    async def test_condition_strategy_gives_up_after_timeout(self):
        _, navigator = await _group_navigator([FakeBlock("Never", None), FakeBlock("Ok", "<p/>", render_after=0)])
        policy = RevealPolicy(strategy=REVEAL_CONDITION, condition_timeout_ms=100, poll_interval_ms=50)

        extraction = await HierarchyExtractor(policy).components(navigator)

        assert extraction.components == {"Ok": "<p/>"}
        assert extraction.failures == {"Never": "code view did not render within 100ms"}

    @pytest.mark.asyncio
    async def test_empty_code_is_a_valid_leaf(self):
        _, navigator = await _group_navigator([FakeBlock("Blank", "")])
        extraction = await HierarchyExtractor().components(navigator)
        assert extraction.components == {"Blank": ""}

    @pytest.mark.asyncio
    async def test_duplicate_names_keep_the_later_block(self):
        _, navigator = await _group_navigator([FakeBlock("Card", "first"), FakeBlock("Card", "second")])
        extraction = await HierarchyExtractor().components(navigator)
        assert extraction.components == {"Card": "second"}

    @pytest.mark.asyncio
    async def test_page_without_blocks_yields_empty_mapping(self):
        _, navigator = await _group_navigator([])
        extraction = await HierarchyExtractor().components(navigator)
        assert extraction.components == {} and extraction.ok


class TestHierarchyExtractor:
    @pytest.mark.asyncio
    async def test_categories_use_navigator_content_and_url(self):
        extractor = HierarchyExtractor()
        categories = await extractor.categories(_StubNavigator(html=ROOT_HTML))
        assert "Marketing" in categories

    def test_reveal_policy_from_settings(self):
        class _Settings:
            reveal_strategy = "fixed_delay"
            settle_delay_ms = 400
            condition_timeout_ms = 2000

        policy = RevealPolicy.from_settings(_Settings())
        assert policy.settle_delay_ms == 400
        assert policy.condition_timeout_ms == 2000
