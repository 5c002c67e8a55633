"""Tests for the page navigator state machine and error mapping."""

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from conftest import FakePage, FakeSite
from core.navigator import NavigationTimeouts, Navigator, NavigatorState
from utils.error_handling import EvaluationError, NavigationError

URL = "https://example.com/plus/ui-blocks"


@pytest.fixture
def site():
    return FakeSite()


@pytest.fixture
def navigator(site):
    return Navigator(FakePage(site), NavigationTimeouts(navigation_ms=1000, go_back_ms=500))


@pytest.mark.asyncio
async def test_navigate_moves_to_loaded(navigator):
    assert navigator.state is NavigatorState.IDLE
    await navigator.navigate(URL)
    assert navigator.state is NavigatorState.LOADED
    assert navigator.url == URL
    assert navigator.metrics["total_navigations"] == 1


@pytest.mark.asyncio
async def test_navigation_timeout_becomes_navigation_error(site, navigator):
    site.goto_failures[URL] = PlaywrightTimeoutError("Timeout 1000ms exceeded")

    with pytest.raises(NavigationError) as excinfo:
        await navigator.navigate(URL)

    assert navigator.state is NavigatorState.FAILED
    assert excinfo.value.context["timeout_ms"] == 1000
    assert navigator.metrics["failed_navigations"] == 1


@pytest.mark.asyncio
async def test_network_failure_becomes_navigation_error(site, navigator):
    site.goto_failures[URL] = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
    with pytest.raises(NavigationError, match="ERR_NAME_NOT_RESOLVED"):
        await navigator.navigate(URL)


@pytest.mark.asyncio
async def test_failed_navigator_can_navigate_again(site, navigator):
    site.goto_failures[URL] = PlaywrightTimeoutError("timeout")
    with pytest.raises(NavigationError):
        await navigator.navigate(URL)

    await navigator.navigate(URL + "/other")
    assert navigator.state is NavigatorState.LOADED


@pytest.mark.asyncio
async def test_go_back_returns_to_previous_page(navigator):
    await navigator.navigate(URL)
    await navigator.navigate(URL + "/group")
    await navigator.go_back()
    assert navigator.url == URL
    assert navigator.state is NavigatorState.LOADED


@pytest.mark.asyncio
async def test_go_back_requires_a_loaded_page(navigator):
    with pytest.raises(NavigationError, match="idle"):
        await navigator.go_back()


@pytest.mark.asyncio
async def test_go_back_timeout_uses_its_own_budget(site, navigator):
    await navigator.navigate(URL)
    site.go_back_failure = PlaywrightTimeoutError("timeout")

    with pytest.raises(NavigationError) as excinfo:
        await navigator.go_back()

    assert excinfo.value.context["timeout_ms"] == 500
    assert navigator.state is NavigatorState.FAILED


@pytest.mark.asyncio
async def test_evaluate_failure_becomes_evaluation_error(site, navigator):
    await navigator.navigate(URL)
    site.evaluate_failures[URL] = PlaywrightError("ReferenceError: x is not defined")
    with pytest.raises(EvaluationError):
        await navigator.evaluate("() => x")


@pytest.mark.asyncio
async def test_wait_for_timeout_becomes_navigation_error(site, navigator):
    site.wait_failure = PlaywrightTimeoutError("timeout")
    with pytest.raises(NavigationError, match="250ms"):
        await navigator.wait_for("() => false", timeout_ms=250)


@pytest.mark.asyncio
async def test_closed_navigator_rejects_operations(navigator):
    async with navigator:
        await navigator.navigate(URL)

    assert navigator.state is NavigatorState.CLOSED
    assert navigator.page.closed
    await navigator.close()
    with pytest.raises(NavigationError, match="closed"):
        await navigator.navigate(URL)


def test_timeouts_from_settings():
    class _Settings:
        login_wait_ms = 1
        navigation_ms = 2
        go_back_ms = 3

    assert NavigationTimeouts.from_settings(_Settings()) == NavigationTimeouts(1, 2, 3)


def test_default_timeouts():
    timeouts = NavigationTimeouts()
    assert (timeouts.login_wait_ms, timeouts.navigation_ms, timeouts.go_back_ms) == (60_000, 30_000, 15_000)
