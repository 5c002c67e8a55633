"""Tests for shared URL base path inference."""

from core.url_prefix import find_url_base_path


def test_empty_collection_yields_empty_string():
    assert find_url_base_path([]) == ""


def test_single_url_is_returned_unchanged():
    url = "https://example.com/plus/ui-blocks/marketing/sections/heroes"
    assert find_url_base_path([url]) == url


def test_common_prefix_of_sibling_pages():
    urls = [
        "https://example.com/plus/ui-blocks/marketing/sections/heroes",
        "https://example.com/plus/ui-blocks/marketing/elements/headers",
        "https://example.com/plus/ui-blocks/marketing/sections/pricing",
    ]
    assert find_url_base_path(urls) == "https://example.com/plus/ui-blocks/marketing/"


def test_prefix_is_character_based_not_segment_based():
    urls = ["https://example.com/app-one", "https://example.com/app-two"]
    assert find_url_base_path(urls) == "https://example.com/app-"


def test_order_of_input_does_not_matter():
    urls = ["b/x/1", "b/x/2", "b/y"]
    assert find_url_base_path(urls) == find_url_base_path(reversed(urls)) == "b/"


def test_disjoint_urls_share_nothing():
    assert find_url_base_path(["alpha", "beta"]) == ""


def test_accepts_generators():
    assert find_url_base_path(url for url in ["abc1", "abc2"]) == "abc"
