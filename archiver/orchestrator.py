"""
Batch Orchestrator
==================
Archives a list of URLs through one remote browser session.

Per run::

    open session ──► for each URL, in input order:
                        open page ─► fetch ─► transform ─► store
                        close page            (always)
                        pause                 (except after the last URL)
                 ──► close session            (always)

Failure containment:
- Session open failure: nothing is processed, reported once.
- Page open / fetch / transform / store failure: logged with the URL and
  recorded in ``BatchResult.errors``; the next URL proceeds.
- Anything unexpected ends the loop; the session is still closed.

No retries and no concurrency: one URL in flight at a time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from .errors import ArchiveError, SessionError, SourceError, StoreError, TransformError
from .fetcher import PageFetcher
from .models import ArchivedPage
from .monitor import ArchiveMonitor, PageTiming
from .run_config import ArchiveRunConfig, redact_endpoint
from .session import BrowserSession, SessionManager
from .store import SnapshotStore
from .transformer import ContentTransformer

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Result of one archive run."""
    archived: List[ArchivedPage] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)
    stats: Dict = field(default_factory=dict)
    session_opened: bool = False
    stop_reason: str = ""


class BatchArchiver:
    """
    Drives one browser session through a batch of URLs.

    The store is opened and closed by the caller; the session is owned by
    the archiver for the duration of ``archive()``.

    Usage::

        with SnapshotStore("archive.db", "snapshots") as store:
            archiver = BatchArchiver(store, ArchiveRunConfig(endpoint=endpoint))
            result = archiver.run(urls)
    """

    def __init__(
        self,
        store: SnapshotStore,
        config: ArchiveRunConfig = None,
        session_manager: SessionManager = None,
        fetcher: PageFetcher = None,
        transformer: ContentTransformer = None,
        sleep: Callable = asyncio.sleep,
    ):
        self.config = config or ArchiveRunConfig()
        self.store = store
        self.sessions = session_manager or SessionManager(
            session_timeout_ms=self.config.session_timeout_ms,
            headless=self.config.headless,
        )
        self.fetcher = fetcher or PageFetcher(self.config.to_fetch_options())
        self.transformer = transformer or ContentTransformer()
        self._sleep = sleep

        # State (reset per run)
        self._archived: List[ArchivedPage] = []
        self._errors: List[Dict] = []
        self._stop_requested = False
        self.monitor = ArchiveMonitor()

        self._progress_callback: Optional[Callable] = None

    def set_progress_callback(self, callback: Callable) -> None:
        """Set callback: callback(index, total, url, status)"""
        self._progress_callback = callback

    def stop(self) -> None:
        """Request a stop at the next URL boundary."""
        self._stop_requested = True
        logger.info("Stop requested")

    # ------------------------------------------------------------------
    # Sync entry point
    # ------------------------------------------------------------------

    def run(self, urls: Iterable[str]) -> BatchResult:
        """Sync wrapper — run the async batch from synchronous code."""
        return asyncio.run(self.archive(urls))

    # ------------------------------------------------------------------
    # Main batch
    # ------------------------------------------------------------------

    async def archive(self, urls: Iterable[str]) -> BatchResult:
        """
        Archive every URL in order through a single session.

        Raises:
            SourceError: ``urls`` is empty (no session is opened)
            StoreError: the store is not open (no session is opened)
        """
        urls = list(urls)
        if not urls:
            raise SourceError("No URLs to archive")
        if not self.store.is_open:
            raise StoreError(self.store.db_path, message="store is not open")

        self._archived.clear()
        self._errors.clear()
        self._stop_requested = False
        self.monitor = ArchiveMonitor(total=len(urls))

        logger.info("=" * 65)
        logger.info("ARCHIVE BATCH STARTED")
        logger.info(f"URLs: {len(urls)}")
        logger.info(f"Browser: {redact_endpoint(self.config.endpoint)}")
        logger.info(f"Delay: {self.config.delay_between_urls}s between URLs")
        logger.info("=" * 65)

        self.monitor.start()
        stop_reason = "completed"
        session_opened = False

        try:
            async with self.sessions.session(self.config.endpoint) as session:
                session_opened = True
                stop_reason = await self._archive_all(session, urls)
        except SessionError as e:
            if session_opened:
                stop_reason = f"Error: {e}"
                logger.error(f"[BATCH] Session error, batch aborted: {e}", exc_info=True)
            else:
                stop_reason = f"Session open failed: {e}"
                logger.error(f"[BATCH] Browser error — no URLs processed: {e}")
        except Exception as e:
            stop_reason = f"Error: {e}"
            logger.error(f"[BATCH] Unexpected error, batch aborted: {e}", exc_info=True)
        finally:
            self.monitor.stop(stop_reason)

        metrics = self.monitor.snapshot()
        logger.info("\n" + self.monitor.format_summary(metrics))

        stats = {
            'urls_total': metrics.urls_total,
            'urls_archived': metrics.urls_archived,
            'urls_failed': metrics.urls_failed,
            'urls_not_attempted': metrics.urls_not_attempted,
            'failures_by_stage': metrics.failures_by_stage,
            'avg_url_ms': metrics.avg_url_ms,
            'avg_fetch_ms': metrics.avg_fetch_ms,
            'p95_url_ms': metrics.p95_url_ms,
            'total_bytes': metrics.total_bytes,
            'total_words': metrics.total_words,
            'http_error_pages': metrics.http_error_pages,
            'not_ready_pages': metrics.not_ready_pages,
            'redirected_pages': metrics.redirected_pages,
            'elapsed_time': metrics.elapsed_sec,
            'stop_reason': stop_reason,
        }

        return BatchResult(
            archived=self._archived.copy(),
            errors=self._errors.copy(),
            stats=stats,
            session_opened=session_opened,
            stop_reason=stop_reason,
        )

    async def _archive_all(self, session: BrowserSession, urls: List[str]) -> str:
        """Process URLs in order; return the stop reason."""
        total = len(urls)
        for index, url in enumerate(urls, 1):
            if self._stop_requested:
                logger.info(f"[BATCH] Stopping before {url} ({total - index + 1} URLs left)")
                return "User requested stop"
            if not self.sessions.is_alive(session):
                logger.error(
                    f"[BATCH] Browser session lost — {total - index + 1} URLs not attempted"
                )
                return "Session lost"

            await self._archive_one(session, url, index, total)

            if index < total and self.config.delay_between_urls > 0:
                logger.info(f"[BATCH] Waiting {self.config.delay_between_urls}s before next URL...")
                await self._sleep(self.config.delay_between_urls)

        return "completed"

    async def _archive_one(
        self,
        session: BrowserSession,
        url: str,
        index: int,
        total: int
    ) -> Optional[ArchivedPage]:
        """
        Archive a single URL inside its own page handle.

        Every per-URL ``ArchiveError`` is contained here; the page handle is
        released on every path by ``SessionManager.page``.
        """
        logger.info(f"[BATCH] ({index}/{total}) Processing: {url}")
        timing = PageTiming(url=url)
        start = time.monotonic()
        stage = "page_open"
        page = None

        try:
            async with self.sessions.page(session) as handle:
                stage = "fetch"
                raw = await self.fetcher.fetch(handle, url)
                timing.fetch_ms = raw.fetch_ms
                timing.html_bytes = len(raw.html.encode('utf-8', errors='replace'))
                timing.http_status = raw.status_code
                timing.ready_observed = raw.ready_observed
                if raw.final_url and raw.final_url != url:
                    timing.redirected = True
                    logger.info(f"[BATCH] {url} redirected to {raw.final_url}")

                stage = "transform"
                t0 = time.monotonic()
                try:
                    markdown = self.transformer.transform(raw.html)
                except Exception as exc:
                    raise TransformError(url, exc) from exc
                timing.transform_ms = (time.monotonic() - t0) * 1000
                timing.word_count = len(markdown.split())

                stage = "store"
                t0 = time.monotonic()
                page = self.store.put(url, markdown, raw.html)
                timing.store_ms = (time.monotonic() - t0) * 1000

        except ArchiveError as e:
            timing.status = "failed"
            timing.stage = stage
            message = getattr(e, 'message', str(e))
            self._errors.append({'url': url, 'stage': stage, 'error': message})
            logger.error(f"[BATCH] Error archiving {url} ({stage}): {message}")
            logger.debug(f"[BATCH] {type(e).__name__} detail for {url}", exc_info=True)
            page = None

        timing.total_ms = (time.monotonic() - start) * 1000
        self.monitor.record_page(timing)

        if page is not None:
            self._archived.append(page)
            logger.info(f"[BATCH] Archived {url} — {timing.word_count:,} words, {timing.total_ms:.0f}ms")

        if self._progress_callback:
            try:
                self._progress_callback(index, total, url, timing.status)
            except Exception as e:
                logger.debug(f"[BATCH] Progress callback error: {e}")

        return page


def archive_urls(
    urls: Iterable[str],
    config: ArchiveRunConfig = None,
    progress_callback: Callable = None
) -> BatchResult:
    """
    Convenience function to archive a list of URLs.

    Opens the store described by ``config``, runs the batch, closes the store.

    Args:
        urls: URLs to archive, in order
        config: Run configuration (defaults apply when omitted)
        progress_callback: callback(index, total, url, status)

    Returns:
        BatchResult for the run
    """
    config = config or ArchiveRunConfig()
    with SnapshotStore(config.db_path, config.snapshots_dir) as store:
        archiver = BatchArchiver(store, config)
        if progress_callback:
            archiver.set_progress_callback(progress_callback)
        return archiver.run(urls)
