"""
Session Manager
===============
Opens and closes the remote browser session and its per-URL pages.

This is the only module that talks to the browser automation transport.

Lifecycle::

    manager = SessionManager(session_timeout_ms=60_000)

    async with manager.session(endpoint) as session:      # connect once
        async with manager.page(session) as handle:       # one page per URL
            ...

Release rules:
    - ``close_page`` / ``close_session`` are idempotent and safe on
      half-opened resources.
    - The scoped blocks release exactly once on every exit path and log
      (never raise) release failures, so a failed page close cannot
      prevent the session close.

The remote endpoint is a Chrome DevTools Protocol websocket URL (e.g. the
Bright Data Scraping Browser) attached with ``connect_over_cdp``.  The
special endpoint ``"local"`` launches a local Chromium instead.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional

from playwright.async_api import async_playwright, Browser, Page

from .errors import SessionError
from .run_config import LOCAL_ENDPOINT, redact_endpoint

logger = logging.getLogger(__name__)


@dataclass
class BrowserSession:
    """An open connection to the browser automation endpoint."""
    endpoint: str = ""
    playwright: Any = None
    browser: Optional[Browser] = None
    opened_at: float = field(default_factory=time.monotonic)
    closed: bool = False

    @property
    def label(self) -> str:
        return redact_endpoint(self.endpoint)


@dataclass
class PageHandle:
    """One browsing context inside a session, scoped to a single URL."""
    page: Optional[Page] = None
    closed: bool = False


class SessionManager:
    """
    Owns the browser automation transport.

    Args:
        session_timeout_ms: Timeout for attaching to the remote endpoint
        headless: Headless mode for local launches
        playwright_factory: Callable returning a Playwright context manager
            (``async_playwright`` by default)
    """

    def __init__(
        self,
        session_timeout_ms: int = 60_000,
        headless: bool = True,
        playwright_factory: Callable = async_playwright,
    ):
        self.session_timeout_ms = session_timeout_ms
        self.headless = headless
        self._playwright_factory = playwright_factory

        self.pages_opened = 0
        self.pages_closed = 0

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def open_session(self, endpoint: Optional[str]) -> BrowserSession:
        """Connect to the endpoint (or launch locally).  Raises ``SessionError``."""
        session = BrowserSession(endpoint=endpoint or LOCAL_ENDPOINT)
        logger.info(f"[SESSION] Connecting to {session.label}...")

        try:
            session.playwright = await self._playwright_factory().start()
            if session.endpoint == LOCAL_ENDPOINT:
                session.browser = await session.playwright.chromium.launch(
                    headless=self.headless,
                    args=['--disable-gpu', '--no-sandbox', '--disable-dev-shm-usage'],
                )
            else:
                session.browser = await session.playwright.chromium.connect_over_cdp(
                    session.endpoint,
                    timeout=self.session_timeout_ms,
                )
        except Exception as exc:
            # Release whatever part of the session did start
            try:
                await self.close_session(session)
            except SessionError as close_exc:
                logger.debug(f"[SESSION] Cleanup after failed open: {close_exc}")
            raise SessionError(
                f"Could not open browser session at {session.label}: {exc}"
            ) from exc

        logger.info(f"[SESSION] Connected to {session.label}")
        return session

    async def close_session(self, session: BrowserSession) -> None:
        """Close the browser and stop the driver.  Raises ``SessionError``."""
        if session.closed:
            return
        session.closed = True

        problems = []
        if session.browser is not None:
            try:
                await session.browser.close()
            except Exception as exc:
                problems.append(f"browser close: {exc}")
            session.browser = None
        if session.playwright is not None:
            try:
                await session.playwright.stop()
            except Exception as exc:
                problems.append(f"driver stop: {exc}")
            session.playwright = None

        if problems:
            raise SessionError("; ".join(problems))
        elapsed = time.monotonic() - session.opened_at
        logger.info(f"[SESSION] Browser closed ({elapsed:.1f}s open)")

    def is_alive(self, session: BrowserSession) -> bool:
        """True while the session is open and the browser still connected."""
        if session.closed or session.browser is None:
            return False
        try:
            return session.browser.is_connected()
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def open_page(self, session: BrowserSession) -> PageHandle:
        """Open a new page in the session.  Raises ``SessionError``."""
        if session.closed or session.browser is None:
            raise SessionError("Session is not open")
        try:
            page = await session.browser.new_page()
        except Exception as exc:
            raise SessionError(f"Could not open page: {exc}") from exc
        self.pages_opened += 1
        return PageHandle(page=page)

    async def close_page(self, handle: PageHandle) -> None:
        """Close a page.  Idempotent.  Raises ``SessionError``."""
        if handle.closed:
            return
        handle.closed = True
        self.pages_closed += 1
        if handle.page is None:
            return
        try:
            await handle.page.close()
        except Exception as exc:
            raise SessionError(f"Could not close page: {exc}") from exc
        logger.debug("[SESSION] Page closed")

    # ------------------------------------------------------------------
    # Scoped acquisition
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def session(self, endpoint: Optional[str]) -> AsyncIterator[BrowserSession]:
        """Open a session, yield it, always close it.  Open failure propagates."""
        session = await self.open_session(endpoint)
        try:
            yield session
        finally:
            try:
                await self.close_session(session)
            except SessionError as exc:
                logger.warning(f"[SESSION] Error closing browser: {exc}")

    @asynccontextmanager
    async def page(self, session: BrowserSession) -> AsyncIterator[PageHandle]:
        """Open a page, yield it, always close it.  Open failure propagates."""
        handle = await self.open_page(session)
        try:
            yield handle
        finally:
            try:
                await self.close_page(handle)
            except SessionError as exc:
                logger.warning(f"[SESSION] Error closing page: {exc}")
