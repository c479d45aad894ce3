#!/usr/bin/env python3
"""
Archiver CLI
============
Archives every URL in a CSV file (or given with ``--url``) through one
remote browser session.

All configuration flows through ``ArchiveRunConfig``.

Exit status:
    1  URL source missing/empty, no browser endpoint, or store unavailable
    0  otherwise — per-URL and session failures are logged, not fatal

Run with: python -m archiver
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .errors import SourceError, StoreError
from .orchestrator import BatchArchiver
from .run_config import ArchiveRunConfig, _DEFAULTS
from .store import SnapshotStore
from .url_source import load_urls, validate_urls

logger = logging.getLogger(__name__)


def print_summary(stats: dict):
    """Print run summary."""
    print("\n" + "=" * 65)
    print("ARCHIVE COMPLETE")
    print("=" * 65)
    print(f"  URLs in batch:       {stats.get('urls_total', 0)}")
    print(f"  Archived:            {stats.get('urls_archived', 0)}")
    print(f"  Failed:              {stats.get('urls_failed', 0)}")
    if stats.get('urls_not_attempted', 0) > 0:
        print(f"  Not attempted:       {stats.get('urls_not_attempted', 0)}")
    if stats.get('http_error_pages', 0) > 0:
        print(f"  HTTP error pages:    {stats.get('http_error_pages', 0)}")
    if stats.get('not_ready_pages', 0) > 0:
        print(f"  Not ready pages:     {stats.get('not_ready_pages', 0)}")
    print(f"  Total time:          {stats.get('elapsed_time', 0):.1f}s")
    if stats.get('avg_url_ms'):
        print(f"  Avg URL time:        {stats.get('avg_url_ms', 0):.0f} ms")
    print(f"  Stop reason:         {stats.get('stop_reason', 'completed')}")
    print("=" * 65)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Archive rendered web pages through a remote browser session',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m archiver                                  # target_urls.csv, endpoint from BRD_AUTH
  python -m archiver urls.csv --ready-selector main
  python -m archiver --url https://example.com --local
        """
    )

    parser.add_argument(
        'input_csv', nargs='?', default=_DEFAULTS["input_csv"],
        help=f'CSV file with a url column (default: {_DEFAULTS["input_csv"]})',
    )
    parser.add_argument(
        '--url', type=str, action='append', default=[],
        help='URL to archive (repeatable); the CSV is not read when given',
    )

    browser_group = parser.add_argument_group('Browser')
    browser_group.add_argument(
        '--endpoint', type=str,
        help='CDP websocket endpoint (default: ARCHIVER_BROWSER_ENDPOINT or BRD_AUTH env var)',
    )
    browser_group.add_argument(
        '--local', action='store_true',
        help='Launch a local Chromium instead of connecting to a remote browser',
    )
    browser_group.add_argument(
        '--headed', action='store_true',
        help='Show the local browser window (with --local)',
    )
    browser_group.add_argument(
        '--session-timeout', type=int, default=_DEFAULTS["session_timeout_ms"],
        help=f'Browser connect timeout in ms (default: {_DEFAULTS["session_timeout_ms"]})',
    )

    fetch_group = parser.add_argument_group('Fetching')
    fetch_group.add_argument(
        '--nav-timeout', type=int, default=_DEFAULTS["navigation_timeout_ms"],
        help=f'Navigation timeout in ms (default: {_DEFAULTS["navigation_timeout_ms"]})',
    )
    fetch_group.add_argument(
        '--ready-selector', type=str,
        help='CSS selector expected on fully rendered pages (optional wait)',
    )
    fetch_group.add_argument(
        '--ready-timeout', type=int, default=_DEFAULTS["ready_timeout_ms"],
        help=f'Ready selector timeout in ms (default: {_DEFAULTS["ready_timeout_ms"]})',
    )
    fetch_group.add_argument(
        '--delay', type=float, default=_DEFAULTS["delay_between_urls"],
        help=f'Pause between URLs in seconds (default: {_DEFAULTS["delay_between_urls"]})',
    )

    store_group = parser.add_argument_group('Storage')
    store_group.add_argument(
        '--db', type=str, default=_DEFAULTS["db_path"],
        help=f'SQLite database path (default: {_DEFAULTS["db_path"]})',
    )
    store_group.add_argument(
        '--snapshots-dir', type=str, default=_DEFAULTS["snapshots_dir"],
        help=f'Directory for raw HTML payloads (default: {_DEFAULTS["snapshots_dir"]})',
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def run_cli_with_args(argv=None) -> int:
    """Parse argv, build ArchiveRunConfig, run.  Returns the exit status."""
    # Load .env file (credentials) before reading the environment
    env_path = Path(__file__).resolve().parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()  # tries CWD

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )

    cfg = ArchiveRunConfig.from_cli_args(args)

    try:
        if cfg.urls:
            urls = validate_urls(cfg.urls)
        else:
            urls = load_urls(cfg.input_csv)
    except SourceError as e:
        logger.error(f"[SOURCE] {e}")
        return 1

    if not cfg.endpoint:
        logger.error(
            "No browser endpoint configured — set BRD_AUTH or "
            "ARCHIVER_BROWSER_ENDPOINT, pass --endpoint, or use --local"
        )
        return 1

    cfg.log_summary(len(urls))

    def progress_cb(index, total, url, status):
        mark = "ok" if status == "ok" else "FAILED"
        print(f"[URL {index}/{total}] {mark} {url[:70]}")

    try:
        with SnapshotStore(cfg.db_path, cfg.snapshots_dir) as store:
            archiver = BatchArchiver(store, cfg)
            archiver.set_progress_callback(progress_cb)
            result = archiver.run(urls)
    except StoreError as e:
        logger.error(f"[STORE] {e}")
        return 1

    print_summary(result.stats)
    return 0


def main():
    sys.exit(run_cli_with_args())


if __name__ == '__main__':
    main()
