"""
Cookie-store persistence and interactive login.
Cookies captured after a manual login are reused for unattended harvests.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional

import aiofiles
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from core.navigator import NavigationTimeouts, Navigator
from utils.error_handling import AuthenticationError, NavigationError, StorageError
from utils.logger import log_harvest_event

logger = logging.getLogger(__name__)

# The account button only appears in the header once the user is signed in.
LOGIN_DETECTED_SCRIPT = """
() => Array.from(document.querySelectorAll('header button'))
  .some(button => button.textContent.includes('Account'))
"""


class CookieRecord(BaseModel):
    """One browser cookie as stored on disk and passed to the browser context."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)
    value: str
    domain: Optional[str] = None
    path: Optional[str] = "/"
    url: Optional[str] = None
    expires: float = -1
    http_only: bool = Field(False, alias="httpOnly")
    secure: bool = False
    same_site: Literal["Strict", "Lax", "None"] = Field("Lax", alias="sameSite")

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("cookie domain must not be blank")
        return v

    @model_validator(mode="after")
    def validate_scope(self) -> "CookieRecord":
        # The browser accepts either a url or a domain/path pair, never both.
        if self.url:
            if self.domain:
                raise ValueError("cookie must set either url or domain, not both")
            self.path = None
        elif not (self.domain and self.path):
            raise ValueError("cookie needs a url or a domain and path")
        return self

    def to_browser(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CookieStore:
    """JSON file holding the cookies of an authenticated session."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    async def load(self) -> List[Dict[str, Any]]:
        if not self.exists():
            raise AuthenticationError(
                f"No cookies found at {self.path}", {"cookies_path": str(self.path)}
            )
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Invalid JSON in cookie store {self.path}: {exc}") from exc
        except OSError as exc:
            raise StorageError(f"Unable to read cookie store {self.path}: {exc}") from exc

        if not isinstance(payload, list) or not payload:
            raise AuthenticationError(
                f"Cookie store {self.path} holds no cookies", {"cookies_path": str(self.path)}
            )
        try:
            records = [CookieRecord.model_validate(entry) for entry in payload]
        except ValidationError as exc:
            raise AuthenticationError(
                f"Cookie store {self.path} contains invalid cookies: {exc.error_count()} error(s)",
                {"cookies_path": str(self.path)},
            ) from exc
        return [record.to_browser() for record in records]

    async def save(self, cookies: List[Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(cookies, indent=2, ensure_ascii=False))
            # Set restrictive permissions
            os.chmod(self.path, 0o600)
        except OSError as exc:
            raise StorageError(f"Unable to write cookie store {self.path}: {exc}") from exc
        logger.info("Cookies saved to %s", self.path)


class Authenticator:
    """Obtains session cookies, either from the store or through a manual login."""

    def __init__(
        self,
        store: CookieStore,
        session_factory: Callable[..., Any],
        timeouts: Optional[NavigationTimeouts] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.session_factory = session_factory
        self.timeouts = timeouts or NavigationTimeouts()
        self.logger = logger or logging.getLogger(__name__)

    async def load(self) -> List[Dict[str, Any]]:
        cookies = await self.store.load()
        self.logger.info("Loaded %d cookies from %s", len(cookies), self.store.path)
        return cookies

    async def login(self, login_url: str) -> List[Dict[str, Any]]:
        """Open a visible browser, wait for the user to sign in, then save the cookies."""
        async with self.session_factory(headless=False) as session:
            navigator = Navigator(await session.new_page(), self.timeouts, logger=self.logger)
            async with navigator:
                try:
                    await navigator.navigate(login_url)
                    self.logger.info("Please log in manually in the browser window...")
                    await navigator.wait_for(
                        LOGIN_DETECTED_SCRIPT, timeout_ms=self.timeouts.login_wait_ms
                    )
                except NavigationError as exc:
                    raise AuthenticationError(
                        f"Login was not completed: {exc}", {"login_url": login_url}
                    ) from exc
                self.logger.info("Login detected, saving cookies...")
                cookies = await session.cookies()

        if not cookies:
            raise AuthenticationError("Login finished without any cookies", {"login_url": login_url})
        await self.store.save(cookies)
        log_harvest_event(
            "auth",
            {"cookies": len(cookies), "cookies_path": str(self.store.path)},
            message=f"Saved {len(cookies)} cookies",
            logger=self.logger,
        )
        return cookies
