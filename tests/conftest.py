"""
Shared fixtures: an in-memory stand-in for the Playwright driver.

``FakeDriver`` plays the role of ``async_playwright()``: it hands out a
fake browser whose pages serve canned HTML per URL and record every
open / goto / close in ``driver.events``.
"""

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from archiver.session import SessionManager
from archiver.store import SnapshotStore


def page_html(title: str, body: str = "") -> str:
    return (
        f"<html><head><title>{title}</title>"
        f"<script>var tracking = 1;</script></head>"
        f"<body><h1>{title}</h1><p>{body or 'Some archived text.'}</p></body></html>"
    )


class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status


class FakePage:
    def __init__(self, browser):
        self.browser = browser
        self.url = "about:blank"
        self._html = "<html></html>"

    async def goto(self, url, wait_until=None, timeout=None):
        self.browser.driver.events.append(("goto", url))
        route = self.browser.driver.routes.get(url)
        if route is None:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        if route == "timeout":
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded.")
        if isinstance(route, Exception):
            raise route
        # (status, html) or (status, html, final_url) for a redirect
        if isinstance(route, tuple):
            status, html, *rest = route
            final_url = rest[0] if rest else url
        else:
            status, html, final_url = 200, route, url
        self.url = final_url
        self._html = html
        return FakeResponse(status)

    async def wait_for_selector(self, selector, timeout=None):
        if selector in self._html:
            return object()
        raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def content(self):
        if self.browser.driver.content_error:
            raise RuntimeError(self.browser.driver.content_error)
        return self._html

    async def close(self):
        self.browser.driver.events.append(("page_close",))
        if self.browser.driver.page_close_error:
            raise RuntimeError(self.browser.driver.page_close_error)


class FakeBrowser:
    def __init__(self, driver):
        self.driver = driver
        self.connected = True

    async def new_page(self):
        self.driver.events.append(("page_open",))
        if self.driver.page_open_error:
            raise RuntimeError(self.driver.page_open_error)
        return FakePage(self)

    def is_connected(self):
        return self.connected

    async def close(self):
        self.driver.events.append(("browser_close",))
        if self.driver.browser_close_error:
            raise RuntimeError(self.driver.browser_close_error)


class FakeChromium:
    def __init__(self, driver):
        self.driver = driver

    async def connect_over_cdp(self, endpoint, timeout=None):
        self.driver.events.append(("connect", endpoint))
        if self.driver.connect_error:
            raise RuntimeError(self.driver.connect_error)
        self.driver.browser = FakeBrowser(self.driver)
        return self.driver.browser

    async def launch(self, headless=True, args=None):
        self.driver.events.append(("launch", headless))
        self.driver.browser = FakeBrowser(self.driver)
        return self.driver.browser


class FakeDriver:
    """Replaces ``async_playwright``; call it to get a startable handle."""

    def __init__(self):
        self.events = []
        self.routes = {}
        self.browser = None
        self.chromium = FakeChromium(self)
        self.connect_error = None
        self.page_open_error = None
        self.page_close_error = None
        self.browser_close_error = None
        self.content_error = None

    def __call__(self):
        return self

    async def start(self):
        self.events.append(("driver_start",))
        return self

    async def stop(self):
        self.events.append(("driver_stop",))

    def count(self, name: str) -> int:
        return sum(1 for event in self.events if event[0] == name)

    def gotos(self):
        return [event[1] for event in self.events if event[0] == "goto"]


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def session_manager(driver):
    return SessionManager(session_timeout_ms=1000, playwright_factory=driver)


@pytest.fixture
def store(tmp_path):
    store = SnapshotStore(str(tmp_path / "archive.db"), str(tmp_path / "snapshots"))
    store.open()
    yield store
    store.close()


@pytest.fixture
def make_html():
    return page_html
