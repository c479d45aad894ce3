"""
Page Fetcher
Navigates an open page handle to a URL and extracts the rendered markup.

The fetcher owns no session lifecycle: the handle is opened and closed by
``SessionManager`` around each call.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .errors import FetchError
from .session import PageHandle

logger = logging.getLogger(__name__)


@dataclass
class FetchOptions:
    """Per-fetch navigation settings."""
    navigation_timeout_ms: int = 120_000
    wait_until: str = "domcontentloaded"   # initial document parsed, not full load
    ready_selector: Optional[str] = None   # marker expected in fully rendered pages
    ready_timeout_ms: int = 30_000


@dataclass
class RawContent:
    """Serialized markup of a page at extraction time."""
    url: str
    html: str
    status_code: int = 0
    final_url: str = ""
    ready_observed: bool = False
    fetch_ms: float = 0.0


async def wait_for_ready(page: Page, selector: Optional[str], timeout_ms: int) -> bool:
    """
    Wait for the readiness selector to appear.

    Returns False on timeout instead of raising; callers extract whatever
    content is present either way.  No selector means nothing to wait for.
    """
    if not selector:
        return True
    try:
        await page.wait_for_selector(selector, timeout=timeout_ms)
        return True
    except PlaywrightTimeout:
        return False


class PageFetcher:
    """
    Fetches rendered page content through a page handle.

    No retries: every failure surfaces as ``FetchError`` carrying the URL
    and the underlying cause.
    """

    def __init__(self, options: FetchOptions = None):
        self.options = options or FetchOptions()

    async def fetch(
        self,
        handle: PageHandle,
        url: str,
        options: FetchOptions = None
    ) -> RawContent:
        """
        Navigate to ``url`` and return the page's serialized markup.

        Args:
            handle: Open page handle
            url: Absolute URL to fetch
            options: Overrides the fetcher's default options

        Returns:
            RawContent with the current document markup

        Raises:
            FetchError: handle closed, navigation timeout/error, extraction error
        """
        opts = options or self.options
        if handle.closed or handle.page is None:
            raise FetchError(url, message="page handle already closed")

        page = handle.page
        start = time.monotonic()

        logger.info(f"[FETCH] Navigating to {url}")
        try:
            response = await page.goto(
                url,
                wait_until=opts.wait_until,
                timeout=opts.navigation_timeout_ms,
            )
        except PlaywrightTimeout as exc:
            raise FetchError(
                url, exc, f"navigation timeout after {opts.navigation_timeout_ms}ms"
            ) from exc
        except Exception as exc:
            raise FetchError(url, exc, f"navigation error: {exc}") from exc

        status = response.status if response is not None else 0
        if status >= 400:
            logger.warning(f"[FETCH] {url} answered HTTP {status} — archiving anyway")

        try:
            ready = await wait_for_ready(page, opts.ready_selector, opts.ready_timeout_ms)
        except Exception as exc:
            raise FetchError(url, exc, f"readiness wait failed: {exc}") from exc
        if not ready:
            logger.warning(
                f"[FETCH] Ready selector '{opts.ready_selector}' not found on {url} "
                f"within {opts.ready_timeout_ms}ms — archiving the page anyway"
            )

        try:
            html = await page.content()
        except Exception as exc:
            raise FetchError(url, exc, f"content extraction failed: {exc}") from exc

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(f"[FETCH] {url} — status={status or 'n/a'}, {len(html):,} chars, {elapsed_ms:.0f}ms")

        return RawContent(
            url=url,
            html=html,
            status_code=status,
            final_url=page.url or url,
            ready_observed=ready,
            fetch_ms=elapsed_ms,
        )
