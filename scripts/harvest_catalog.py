#!/usr/bin/env python3
"""Harvest the component catalog into a timestamped JSON snapshot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlparse

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from core.authenticator import Authenticator, CookieStore
from core.browser_session import BrowserSession
from core.extractors import HierarchyExtractor, RevealPolicy
from core.navigator import NavigationTimeouts
from core.traversal import TraversalOrchestrator
from utils.config_loader import HarvestSettings, load_settings
from utils.error_handling import AuthenticationError, ConfigurationError, HarvestError
from utils.logger import setup_logger
from utils.rich_helpers import create_tracker, render_error, render_harvest_summary
from utils.rich_themes import get_console
from utils.serialization import save_catalog

LOGGER = logging.getLogger("harvester")

OUTPUT_PREFIX = "catalog-components"
DANGEROUS_PATH_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')


def default_output_path(now: Optional[datetime] = None) -> str:
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d-%H%M%S")
    return f"./{OUTPUT_PREFIX}-{timestamp}.json"


def is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_file_path(value: str) -> bool:
    """Reject dangerous characters and make sure the parent directory exists."""
    if not value or DANGEROUS_PATH_CHARS.search(value):
        return False
    try:
        Path(value).parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Download the UI component catalog to a JSON file")
    parser.add_argument(
        "--output-path",
        default=default_output_path(),
        help="Path to save the catalog snapshot (default: timestamped filename)",
    )
    parser.add_argument(
        "--cookies-path",
        default="./cookies.json",
        help='Path of the cookie store (default: "./cookies.json")',
    )
    parser.add_argument("--root-url", help="Catalog root page (default from settings)")
    parser.add_argument("--login-url", help="Login page used with --auth (default from settings)")
    parser.add_argument("--config", help="Path to settings JSON (default: config/settings.json)")
    parser.add_argument(
        "--auth",
        action="store_true",
        help="Open a browser to log in and save the session cookies before harvesting",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show the browser window and debug output",
    )
    return parser


def validate_inputs(args: argparse.Namespace, settings: HarvestSettings) -> None:
    for label, url in (("root", args.root_url or settings.root_url), ("login", args.login_url or settings.login_url)):
        if not is_valid_url(url):
            raise ConfigurationError(f"Invalid {label} URL: {url}")
    if not is_valid_file_path(args.output_path):
        raise ConfigurationError(f"Invalid output path: {args.output_path}")
    if not is_valid_file_path(args.cookies_path):
        raise ConfigurationError(f"Invalid cookies path: {args.cookies_path}")


async def run_harvest(args: argparse.Namespace, settings: HarvestSettings, console) -> int:
    timeouts = NavigationTimeouts.from_settings(settings)
    root_url = args.root_url or settings.root_url
    headless = False if args.debug else settings.browser.get("headless", True)

    def session_factory(headless: Optional[bool] = headless) -> BrowserSession:
        return BrowserSession(settings.browser, headless=headless)

    authenticator = Authenticator(CookieStore(Path(args.cookies_path)), session_factory, timeouts)
    if args.auth:
        cookies = await authenticator.login(args.login_url or settings.login_url)
    else:
        cookies = await authenticator.load()

    extractor = HierarchyExtractor(RevealPolicy.from_settings(settings))
    tracker = create_tracker(console=console, transient=True)
    async with session_factory() as session:
        await session.add_cookies(cookies)
        orchestrator = TraversalOrchestrator(
            session,
            extractor,
            timeouts,
            max_concurrent_categories=settings.max_concurrent_categories,
            progress_callback=tracker.handle_event,
        )
        with tracker.progress:
            result = await orchestrator.harvest(root_url)

    size = save_catalog(Path(args.output_path), result.tree)
    size_kb = round(size / 1024)
    LOGGER.info("Download complete! %sKB saved to %s", size_kb, args.output_path)
    render_harvest_summary(result, args.output_path, size_kb, console=console)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    console = get_console()

    try:
        settings = load_settings(args.config)
        validate_inputs(args, settings)
    except ConfigurationError as exc:
        render_error(str(exc))
        return 1

    setup_logger(
        None,
        level=logging.DEBUG if args.debug else logging.INFO,
        console=args.debug,
        config=dict(
            settings.logging,
            console=args.debug,
            log_level="DEBUG" if args.debug else settings.logging.get("log_level"),
        ),
    )

    try:
        return asyncio.run(run_harvest(args, settings, console))
    except AuthenticationError as exc:
        LOGGER.error("Authentication failed: %s", exc)
        render_error(
            str(exc),
            details="Run with --auth to log in, or use --cookies-path=<FILE> to point at existing cookies",
        )
        return 1
    except HarvestError as exc:
        LOGGER.error("Harvest failed: %s", exc, exc_info=args.debug)
        render_error(str(exc))
        return 1
    except KeyboardInterrupt:
        render_error("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
