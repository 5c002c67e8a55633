import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from utils.error_handling import AuthenticationError, NavigationError


class BrowserSession:
    """One browser with a single shared context holding the authenticated cookies.

    Pages opened through :meth:`new_page` share the context, so cookies are
    attached once per session and every tab sees them.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        headless: Optional[bool] = None,
    ) -> None:
        self.config = config or {}
        self.logger = logger or logging.getLogger(__name__)
        self.headless = headless if headless is not None else self.config.get("headless", True)

        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.pages_opened = 0

    @property
    def started(self) -> bool:
        return self.context is not None

    async def start(self) -> None:
        if self.started:
            return
        self.logger.debug("Starting async Playwright (headless=%s)", self.headless)
        browser_type = self.config.get("browser_type", "chromium")
        try:
            self.playwright = await async_playwright().start()
            self.browser = await getattr(self.playwright, browser_type).launch(
                **self._build_launch_options()
            )
            self.context = await self.browser.new_context(**self._build_context_options())
        except PlaywrightError as exc:
            await self.close()
            raise NavigationError(
                f"Unable to start {browser_type}: {exc.message}", {"browser_type": browser_type}
            ) from exc

    async def close(self) -> None:
        if self.started:
            self.logger.debug("Closing browser session after %d pages", self.pages_opened)
        if self.context:
            await self._safe_close_context(self.context)
            self.context = None
        await self._safe_close_browser(self.browser)
        self.browser = None
        if self.playwright:
            await self.playwright.stop()
            self.playwright = None

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        await self.start()
        try:
            await self.context.add_cookies(cookies)
        except PlaywrightError as exc:
            raise AuthenticationError(
                f"Browser rejected the stored cookies: {exc.message}", {"cookies": len(cookies)}
            ) from exc
        self.logger.info("Loaded %d cookies into the browser context", len(cookies))

    async def cookies(self) -> List[Dict[str, Any]]:
        await self.start()
        return list(await self.context.cookies())

    async def new_page(self) -> Page:
        await self.start()
        try:
            page = await self.context.new_page()
        except PlaywrightError as exc:
            raise NavigationError(f"Unable to open a new page: {exc.message}") from exc
        self.pages_opened += 1
        return page

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _safe_close_context(self, context: BrowserContext) -> None:
        try:
            await context.close()
        except Exception:
            self.logger.debug("Failed to close Playwright context", exc_info=True)

    async def _safe_close_browser(self, browser: Optional[Browser]) -> None:
        if not browser:
            return
        try:
            await browser.close()
        except Exception:
            self.logger.debug("Failed to close Playwright browser", exc_info=True)

    def _build_launch_options(self) -> Dict[str, Any]:
        options = dict(self.config.get("launch_options", {}))
        options["headless"] = self.headless
        return options

    def _build_context_options(self) -> Dict[str, Any]:
        options = dict(self.config.get("context_options", {}))
        options.setdefault("viewport", {"width": 1280, "height": 720})
        return options
