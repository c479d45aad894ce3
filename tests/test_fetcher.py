"""
Tests for fetcher.py — navigation, readiness wait and extraction.
"""

import asyncio

import pytest

from archiver.errors import FetchError
from archiver.fetcher import FetchOptions, PageFetcher, wait_for_ready


def fetch_one(session_manager, url, options=None):
    async def scenario():
        async with session_manager.session("local") as session:
            async with session_manager.page(session) as handle:
                return await PageFetcher(options).fetch(handle, url)

    return asyncio.run(scenario())


class TestFetch:

    def test_returns_markup(self, driver, session_manager, make_html):
        driver.routes["https://a.example/x"] = make_html("X")
        raw = fetch_one(session_manager, "https://a.example/x")
        assert raw.url == "https://a.example/x"
        assert "<h1>X</h1>" in raw.html
        assert raw.status_code == 200
        assert raw.final_url == "https://a.example/x"

    def test_http_error_status_is_archived(self, driver, session_manager, make_html):
        driver.routes["https://a.example/gone"] = (404, make_html("Not Found"))
        raw = fetch_one(session_manager, "https://a.example/gone")
        assert raw.status_code == 404
        assert "Not Found" in raw.html

    def test_navigation_timeout(self, driver, session_manager):
        driver.routes["https://a.example/slow"] = "timeout"
        with pytest.raises(FetchError) as exc_info:
            fetch_one(session_manager, "https://a.example/slow",
                      FetchOptions(navigation_timeout_ms=500))
        assert exc_info.value.url == "https://a.example/slow"
        assert "timeout" in str(exc_info.value)
        assert "500ms" in str(exc_info.value)

    def test_navigation_error(self, driver, session_manager):
        with pytest.raises(FetchError, match="ERR_NAME_NOT_RESOLVED"):
            fetch_one(session_manager, "https://unknown.example/")

    def test_extraction_error(self, driver, session_manager, make_html):
        driver.routes["https://a.example/x"] = make_html("X")
        driver.content_error = "Execution context was destroyed"
        with pytest.raises(FetchError, match="content extraction failed"):
            fetch_one(session_manager, "https://a.example/x")

    def test_closed_handle(self, driver, session_manager, make_html):
        driver.routes["https://a.example/x"] = make_html("X")

        async def scenario():
            async with session_manager.session("local") as session:
                handle = await session_manager.open_page(session)
                await session_manager.close_page(handle)
                await PageFetcher().fetch(handle, "https://a.example/x")

        with pytest.raises(FetchError, match="already closed"):
            asyncio.run(scenario())
        assert driver.count("goto") == 0


class TestReadiness:
    """A missing readiness marker is a warning, never a failure."""

    def test_ready_selector_found(self, driver, session_manager):
        driver.routes["https://a.example/x"] = "<html><body><article>Body</article></body></html>"
        raw = fetch_one(session_manager, "https://a.example/x",
                        FetchOptions(ready_selector="article"))
        assert raw.ready_observed is True

    def test_ready_selector_timeout_still_extracts(self, driver, session_manager, make_html, caplog):
        driver.routes["https://a.example/x"] = make_html("X")
        raw = fetch_one(session_manager, "https://a.example/x",
                        FetchOptions(ready_selector=".marvel_database_section", ready_timeout_ms=10))
        assert raw.ready_observed is False
        assert "<h1>X</h1>" in raw.html
        assert "archiving the page anyway" in caplog.text

    def test_no_selector_means_ready(self, driver, session_manager, make_html):
        driver.routes["https://a.example/x"] = make_html("X")
        raw = fetch_one(session_manager, "https://a.example/x")
        assert raw.ready_observed is True

    def test_wait_for_ready_returns_bool(self):
        class SlowPage:
            async def wait_for_selector(self, selector, timeout=None):
                from playwright.async_api import TimeoutError as PlaywrightTimeout
                raise PlaywrightTimeout("Timeout exceeded")

        assert asyncio.run(wait_for_ready(SlowPage(), "main", 5)) is False
        assert asyncio.run(wait_for_ready(SlowPage(), None, 5)) is True
