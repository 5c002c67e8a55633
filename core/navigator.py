import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from utils.error_handling import EvaluationError, NavigationError


class NavigatorState(str, Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    LOADED = "loaded"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class NavigationTimeouts:
    """Independent budgets, in milliseconds, for each kind of wait."""

    login_wait_ms: int = 60_000
    navigation_ms: int = 30_000
    go_back_ms: int = 15_000

    @classmethod
    def from_settings(cls, settings: Any) -> "NavigationTimeouts":
        return cls(
            login_wait_ms=settings.login_wait_ms,
            navigation_ms=settings.navigation_ms,
            go_back_ms=settings.go_back_ms,
        )


class Navigator:
    """Drives a single page: navigate, wait, evaluate, go back, close.

    Failures are raised to the caller as ``NavigationError`` or
    ``EvaluationError``. Nothing is retried here.
    """

    def __init__(
        self,
        page,
        timeouts: Optional[NavigationTimeouts] = None,
        wait_until: str = "networkidle",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.page = page
        self.timeouts = timeouts or NavigationTimeouts()
        self.wait_until = wait_until
        self.logger = logger or logging.getLogger(__name__)
        self.state = NavigatorState.IDLE
        self.metrics: Dict[str, Any] = {
            "total_navigations": 0,
            "failed_navigations": 0,
            "avg_navigation_time": 0.0,
        }

    @property
    def url(self) -> str:
        return self.page.url

    async def navigate(self, url: str) -> None:
        self._ensure_open("navigate")
        self.state = NavigatorState.NAVIGATING
        self.logger.debug("Navigating to %s", url)
        start_time = time.time()
        try:
            await self.page.goto(
                url, wait_until=self.wait_until, timeout=self.timeouts.navigation_ms
            )
        except PlaywrightTimeoutError as exc:
            self._fail()
            raise NavigationError(
                f"Timed out after {self.timeouts.navigation_ms}ms loading {url}",
                {"url": url, "timeout_ms": self.timeouts.navigation_ms},
            ) from exc
        except PlaywrightError as exc:
            self._fail()
            raise NavigationError(
                f"Failed to load {url}: {exc.message}", {"url": url}
            ) from exc
        self.state = NavigatorState.LOADED
        self._record_navigation_metric(time.time() - start_time)

    async def go_back(self) -> None:
        self._ensure_open("go back")
        if self.state is not NavigatorState.LOADED:
            raise NavigationError(
                f"Cannot go back from state {self.state.value}", {"url": self.page.url}
            )
        self.state = NavigatorState.NAVIGATING
        try:
            response = await self.page.go_back(
                wait_until=self.wait_until, timeout=self.timeouts.go_back_ms
            )
        except PlaywrightTimeoutError as exc:
            self._fail()
            raise NavigationError(
                f"Timed out after {self.timeouts.go_back_ms}ms going back",
                {"url": self.page.url, "timeout_ms": self.timeouts.go_back_ms},
            ) from exc
        except PlaywrightError as exc:
            self._fail()
            raise NavigationError(
                f"Failed to go back: {exc.message}", {"url": self.page.url}
            ) from exc
        if response is None:
            self.logger.debug("History replay on %s returned no response", self.page.url)
        self.state = NavigatorState.LOADED

    async def wait_for(
        self, expression: str, timeout_ms: Optional[int] = None, arg: Any = None
    ) -> None:
        """Wait until ``expression`` is truthy in the page."""
        self._ensure_open("wait")
        timeout = timeout_ms or self.timeouts.navigation_ms
        try:
            await self.page.wait_for_function(expression, arg=arg, timeout=timeout)
        except PlaywrightTimeoutError as exc:
            raise NavigationError(
                f"Condition not met within {timeout}ms",
                {"url": self.page.url, "timeout_ms": timeout},
            ) from exc
        except PlaywrightError as exc:
            raise NavigationError(
                f"Waiting for condition failed: {exc.message}", {"url": self.page.url}
            ) from exc

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._ensure_open("evaluate")
        try:
            return await self.page.evaluate(script, arg)
        except PlaywrightError as exc:
            raise EvaluationError(
                f"Page evaluation failed: {exc.message}", {"url": self.page.url}
            ) from exc

    def locator(self, selector: str):
        """Lazy page locator; Playwright errors surface when it is used."""
        self._ensure_open("locate elements")
        return self.page.locator(selector)

    async def pause(self, delay_ms: int) -> None:
        self._ensure_open("pause")
        try:
            await self.page.wait_for_timeout(delay_ms)
        except PlaywrightError as exc:
            raise NavigationError(
                f"Page closed while waiting: {exc.message}", {"url": self.page.url}
            ) from exc

    async def content(self) -> str:
        self._ensure_open("read content")
        try:
            return await self.page.content()
        except PlaywrightError as exc:
            raise EvaluationError(
                f"Unable to read page content: {exc.message}", {"url": self.page.url}
            ) from exc

    async def close(self) -> None:
        if self.state is NavigatorState.CLOSED:
            return
        self.state = NavigatorState.CLOSED
        try:
            await self.page.close()
        except PlaywrightError:
            self.logger.debug("Failed to close Playwright page", exc_info=True)

    async def __aenter__(self) -> "Navigator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_open(self, action: str) -> None:
        if self.state is NavigatorState.CLOSED:
            raise NavigationError(f"Cannot {action}: page is closed")

    def _fail(self) -> None:
        self.state = NavigatorState.FAILED
        self.metrics["failed_navigations"] += 1

    def _record_navigation_metric(self, elapsed: float) -> None:
        metrics = self.metrics
        total = metrics["total_navigations"] + 1
        running_avg = metrics["avg_navigation_time"]
        metrics["avg_navigation_time"] = running_avg + (elapsed - running_avg) / total
        metrics["total_navigations"] = total
