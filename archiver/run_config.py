"""
Unified Run Configuration
=========================
Single source of truth for ALL archiver defaults and runtime limits.

The CLI flags and environment populate it; the fetcher options are built
*from* it via ``to_fetch_options()``.

Remote browser endpoint resolution (first match wins):
    1. ``--endpoint`` flag
    2. ``ARCHIVER_BROWSER_ENDPOINT`` env var (full ws/wss URL)
    3. ``BRD_AUTH`` env var — Bright Data Scraping Browser credential,
       ``brd-customer-<ACCOUNT>-zone-<ZONE>:<PASSWORD>``, expanded to
       ``wss://<BRD_AUTH>@<ARCHIVER_BROWSER_HOST>``

Security:
    - The endpoint embeds credentials; only ``redact_endpoint()`` output
      is ever logged.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse, urlunparse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "input_csv": "target_urls.csv",
    "db_path": "archive.db",
    "snapshots_dir": "snapshots",
    "browser_host": "brd.superproxy.io:9222",
    "session_timeout_ms": 60_000,     # connecting to the remote browser
    "navigation_timeout_ms": 120_000,  # page.goto, waits for DOMContentLoaded
    "ready_timeout_ms": 30_000,       # optional readiness selector wait
    "ready_selector": None,
    "delay_between_urls": 2.0,        # seconds between URLs
    "headless": True,                 # only used with --local
}

LOCAL_ENDPOINT = "local"


def build_endpoint(auth: str, host: str = _DEFAULTS["browser_host"]) -> str:
    """Expand a Bright Data credential string into a CDP websocket URL."""
    return f"wss://{auth}@{host}"


def redact_endpoint(endpoint: Optional[str]) -> str:
    """Return the endpoint with any embedded credentials masked."""
    if not endpoint:
        return "(none)"
    if endpoint == LOCAL_ENDPOINT:
        return "local Chromium"
    try:
        parsed = urlparse(endpoint)
    except ValueError:
        return "(unparseable endpoint)"
    if not parsed.netloc:
        return endpoint
    host = parsed.hostname or ""
    if parsed.port:
        host = f"{host}:{parsed.port}"
    if parsed.username or parsed.password:
        host = f"***@{host}"
    return urlunparse((parsed.scheme, host, parsed.path, "", "", ""))


def resolve_endpoint(explicit: Optional[str] = None) -> Optional[str]:
    """Resolve the remote browser endpoint from a flag value or the environment."""
    if explicit:
        return explicit
    endpoint = os.environ.get("ARCHIVER_BROWSER_ENDPOINT", "").strip()
    if endpoint:
        return endpoint
    auth = os.environ.get("BRD_AUTH", "").strip()
    if auth:
        host = os.environ.get("ARCHIVER_BROWSER_HOST", "").strip() or _DEFAULTS["browser_host"]
        return build_endpoint(auth, host)
    return None


@dataclass
class ArchiveRunConfig:
    """
    Unified configuration consumed by every archiver subsystem.

    Populate via:
      - ``ArchiveRunConfig()``                 → all defaults
      - ``ArchiveRunConfig(delay_between_urls=0)`` → override one value
      - ``ArchiveRunConfig.from_cli_args(ns)``  → from argparse Namespace
    """

    # ---- Inputs ----
    input_csv: str = _DEFAULTS["input_csv"]
    urls: List[str] = field(default_factory=list)   # explicit --url values

    # ---- Remote browser ----
    endpoint: Optional[str] = None
    headless: bool = _DEFAULTS["headless"]
    session_timeout_ms: int = _DEFAULTS["session_timeout_ms"]

    # ---- Fetching ----
    navigation_timeout_ms: int = _DEFAULTS["navigation_timeout_ms"]
    ready_selector: Optional[str] = _DEFAULTS["ready_selector"]
    ready_timeout_ms: int = _DEFAULTS["ready_timeout_ms"]

    # ---- Pacing ----
    delay_between_urls: float = _DEFAULTS["delay_between_urls"]

    # ---- Storage ----
    db_path: str = _DEFAULTS["db_path"]
    snapshots_dir: str = _DEFAULTS["snapshots_dir"]

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_cli_args(cls, args) -> "ArchiveRunConfig":
        """Build config from an argparse Namespace (``__main__.py``)."""
        if getattr(args, "local", False):
            endpoint = LOCAL_ENDPOINT
        else:
            endpoint = resolve_endpoint(getattr(args, "endpoint", None))

        return cls(
            input_csv=getattr(args, "input_csv", None) or _DEFAULTS["input_csv"],
            urls=list(getattr(args, "url", None) or []),
            endpoint=endpoint,
            headless=not getattr(args, "headed", False),
            session_timeout_ms=getattr(args, "session_timeout", _DEFAULTS["session_timeout_ms"]),
            navigation_timeout_ms=getattr(args, "nav_timeout", _DEFAULTS["navigation_timeout_ms"]),
            ready_selector=getattr(args, "ready_selector", None) or None,
            ready_timeout_ms=getattr(args, "ready_timeout", _DEFAULTS["ready_timeout_ms"]),
            delay_between_urls=getattr(args, "delay", _DEFAULTS["delay_between_urls"]),
            db_path=getattr(args, "db", None) or _DEFAULTS["db_path"],
            snapshots_dir=getattr(args, "snapshots_dir", None) or _DEFAULTS["snapshots_dir"],
        )

    # -----------------------------------------------------------------------
    # Converters
    # -----------------------------------------------------------------------
    def to_fetch_options(self):
        """Return ``FetchOptions`` populated from this run config."""
        from .fetcher import FetchOptions
        return FetchOptions(
            navigation_timeout_ms=self.navigation_timeout_ms,
            ready_selector=self.ready_selector,
            ready_timeout_ms=self.ready_timeout_ms,
        )

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self, url_count: int) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("ARCHIVE RUN CONFIG")
        logger.info("=" * 60)
        if self.urls:
            logger.info(f"  Source:           {len(self.urls)} URL(s) from --url")
        else:
            logger.info(f"  Source:           {self.input_csv}")
        logger.info(f"  URLs:             {url_count}")
        logger.info(f"  Browser:          {redact_endpoint(self.endpoint)}")
        logger.info(f"  Nav Timeout:      {self.navigation_timeout_ms}ms")
        if self.ready_selector:
            logger.info(f"  Ready Selector:   {self.ready_selector} ({self.ready_timeout_ms}ms)")
        logger.info(f"  Delay:            {self.delay_between_urls}s between URLs")
        logger.info(f"  Database:         {self.db_path}")
        logger.info(f"  Snapshots Dir:    {self.snapshots_dir}")
        logger.info("=" * 60)
