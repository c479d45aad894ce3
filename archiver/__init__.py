"""
Rendered Page Archiver
Archives the rendered content of a list of web pages: raw HTML on disk,
Markdown + metadata in SQLite, one record per URL.

CLI Usage:
    python -m archiver [urls.csv] [options]

    Options:
        --url               Archive this URL (repeatable, replaces the CSV)
        --endpoint          Remote browser CDP endpoint (or BRD_AUTH env var)
        --local             Launch a local Chromium instead
        --ready-selector    CSS selector marking a fully rendered page
        --delay             Pause between URLs in seconds (default: 2.0)
        --db                SQLite database path (default: archive.db)
        --snapshots-dir     Raw HTML directory (default: snapshots)
"""

from .errors import (
    ArchiveError, SourceError, SessionError, FetchError, TransformError, StoreError
)
from .models import ArchivedPage
from .store import SnapshotStore
from .transformer import ContentTransformer, html_to_markdown
from .session import SessionManager, BrowserSession, PageHandle
from .fetcher import PageFetcher, FetchOptions, RawContent, wait_for_ready
from .orchestrator import BatchArchiver, BatchResult, archive_urls
from .run_config import ArchiveRunConfig
from .url_source import load_urls

__all__ = [
    # Errors
    'ArchiveError',
    'SourceError',
    'SessionError',
    'FetchError',
    'TransformError',
    'StoreError',
    # Components
    'ArchivedPage',
    'SnapshotStore',
    'ContentTransformer',
    'html_to_markdown',
    'SessionManager',
    'BrowserSession',
    'PageHandle',
    'PageFetcher',
    'FetchOptions',
    'RawContent',
    'wait_for_ready',
    'BatchArchiver',
    'BatchResult',
    'archive_urls',
    'ArchiveRunConfig',
    'load_urls',
]

__version__ = '1.0.0'
