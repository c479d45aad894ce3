"""
Archive Monitor
===============
Per-URL timing and batch totals for an archive run.

Tracks:
- URLs archived / failed / not attempted
- Per-phase timing (fetch, transform, store)
- Bytes of markup fetched, words of Markdown produced
- Pages archived with an HTTP error status, without the ready marker, or after a redirect
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class PageTiming:
    """Timing breakdown for a single URL."""
    url: str = ""
    fetch_ms: float = 0.0
    transform_ms: float = 0.0
    store_ms: float = 0.0
    total_ms: float = 0.0
    html_bytes: int = 0
    word_count: int = 0
    http_status: int = 0
    ready_observed: bool = True
    redirected: bool = False
    status: str = "ok"   # ok | failed
    stage: str = ""      # stage that failed: page_open | fetch | transform | store


@dataclass
class BatchMetrics:
    """Snapshot of the run's metrics."""
    urls_total: int = 0
    urls_archived: int = 0
    urls_failed: int = 0
    urls_not_attempted: int = 0

    avg_url_ms: float = 0.0
    avg_fetch_ms: float = 0.0
    p95_url_ms: float = 0.0

    total_bytes: int = 0
    total_words: int = 0
    http_error_pages: int = 0    # archived with a 4xx/5xx response
    not_ready_pages: int = 0     # archived without the ready selector
    redirected_pages: int = 0
    failures_by_stage: dict = field(default_factory=dict)

    elapsed_sec: float = 0.0
    stop_reason: str = ""


class ArchiveMonitor:
    """
    Collects ``PageTiming`` records for one batch run.

    Usage::

        monitor = ArchiveMonitor(total=len(urls))
        monitor.start()
        monitor.record_page(PageTiming(url=url, ...))
        monitor.stop("completed")
        print(monitor.format_summary(monitor.snapshot()))
    """

    def __init__(self, total: int = 0):
        self._total = total
        self._start_time: float = 0.0
        self._end_time: float = 0.0
        self._timings: List[PageTiming] = []
        self._stop_reason = ""

    def start(self) -> None:
        self._start_time = time.monotonic()

    def stop(self, reason: str = "completed") -> None:
        self._end_time = time.monotonic()
        self._stop_reason = reason

    def record_page(self, timing: PageTiming) -> None:
        """Record metrics for a processed URL."""
        self._timings.append(timing)

    @property
    def processed(self) -> int:
        return len(self._timings)

    def snapshot(self) -> BatchMetrics:
        """Compute metrics from the recorded timings."""
        end = self._end_time or time.monotonic()
        elapsed = end - self._start_time if self._start_time else 0.0

        ok = [t for t in self._timings if t.status == "ok"]
        failed = [t for t in self._timings if t.status != "ok"]

        totals = [t.total_ms for t in self._timings if t.total_ms > 0]
        fetches = [t.fetch_ms for t in self._timings if t.fetch_ms > 0]
        avg_url = sum(totals) / len(totals) if totals else 0.0
        avg_fetch = sum(fetches) / len(fetches) if fetches else 0.0

        p95 = 0.0
        if totals:
            sorted_t = sorted(totals)
            idx = int(len(sorted_t) * 0.95)
            p95 = sorted_t[min(idx, len(sorted_t) - 1)]

        by_stage = {}
        for t in failed:
            by_stage[t.stage or "unknown"] = by_stage.get(t.stage or "unknown", 0) + 1

        return BatchMetrics(
            urls_total=self._total,
            urls_archived=len(ok),
            urls_failed=len(failed),
            urls_not_attempted=max(0, self._total - len(self._timings)),
            avg_url_ms=round(avg_url, 1),
            avg_fetch_ms=round(avg_fetch, 1),
            p95_url_ms=round(p95, 1),
            total_bytes=sum(t.html_bytes for t in ok),
            total_words=sum(t.word_count for t in ok),
            http_error_pages=sum(1 for t in ok if t.http_status >= 400),
            not_ready_pages=sum(1 for t in ok if not t.ready_observed),
            redirected_pages=sum(1 for t in ok if t.redirected),
            failures_by_stage=by_stage,
            elapsed_sec=round(elapsed, 2),
            stop_reason=self._stop_reason,
        )

    def format_summary(self, metrics: BatchMetrics) -> str:
        """Format a human-readable summary string."""
        lines = [
            "=" * 65,
            "  ARCHIVE RUN SUMMARY",
            "=" * 65,
            f"  URLs in batch:       {metrics.urls_total}",
            f"  Archived:            {metrics.urls_archived}",
            f"  Failed:              {metrics.urls_failed}",
            f"  Not attempted:       {metrics.urls_not_attempted}",
        ]
        for stage, count in sorted(metrics.failures_by_stage.items()):
            lines.append(f"    failed at {stage + ':':<10} {count}")
        lines += [
            "-" * 65,
            f"  Avg URL time:        {metrics.avg_url_ms:.0f} ms",
            f"  Avg fetch time:      {metrics.avg_fetch_ms:.0f} ms",
            f"  P95 URL time:        {metrics.p95_url_ms:.0f} ms",
            f"  Markup archived:     {metrics.total_bytes:,} bytes",
            f"  Markdown words:      {metrics.total_words:,}",
            f"  HTTP error pages:    {metrics.http_error_pages}",
            f"  Not ready pages:     {metrics.not_ready_pages}",
            f"  Redirected pages:    {metrics.redirected_pages}",
            "-" * 65,
            f"  Elapsed time:        {metrics.elapsed_sec:.1f} s",
            f"  Stop reason:         {metrics.stop_reason}",
            "=" * 65,
        ]
        return "\n".join(lines)
