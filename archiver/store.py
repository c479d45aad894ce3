"""
Snapshot Store
==============
Persists one archived-page record per URL plus the raw HTML payloads.

Layout:
    - ``archive.db``   — SQLite table ``snapshots``, one row per URL
    - ``snapshots/``   — one ``<sanitized-url>_<epoch-ms>.html`` file per
                         archive attempt

Write order per URL: payload file first, then the record upsert.  A crash
between the two leaves an orphaned payload file, never a record pointing
at a payload that was not fully written.  Older payloads of a re-archived
URL are kept on disk; only the record is replaced.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .errors import StoreError
from .models import ArchivedPage
from .utils import sanitize_url

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT UNIQUE NOT NULL,
    archived_at TEXT NOT NULL,
    normalized_text TEXT NOT NULL,
    raw_content_ref TEXT NOT NULL
)
"""

_UPSERT = """
INSERT INTO snapshots (url, archived_at, normalized_text, raw_content_ref)
VALUES (?, ?, ?, ?)
ON CONFLICT(url) DO UPDATE SET
    archived_at = excluded.archived_at,
    normalized_text = excluded.normalized_text,
    raw_content_ref = excluded.raw_content_ref
"""

_COLUMNS = "url, archived_at, normalized_text, raw_content_ref"


def payload_filename(url: str, when: datetime) -> str:
    """Payload file name for one archive attempt of ``url`` at ``when``."""
    epoch_ms = int(when.timestamp() * 1000)
    return f"{sanitize_url(url)}_{epoch_ms}.html"


class SnapshotStore:
    """
    SQLite-backed archive of rendered pages.

    Usage::

        with SnapshotStore("archive.db", "snapshots") as store:
            page = store.put(url, markdown, html)
    """

    def __init__(self, db_path: str = "archive.db", snapshots_dir: str = "snapshots"):
        self.db_path = db_path
        self.snapshots_dir = Path(snapshots_dir)
        self._conn: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "SnapshotStore":
        """Open the database and ensure the schema and payload directory exist."""
        if self._conn is not None:
            return self
        try:
            self.snapshots_dir.mkdir(parents=True, exist_ok=True)
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
            conn.execute(_SCHEMA)
            conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(self.db_path, exc, f"cannot open store: {exc}") from exc
        self._conn = conn
        logger.info(f"[STORE] Opened {self.db_path} (payloads in {self.snapshots_dir})")
        return self

    def close(self) -> None:
        """Close the database connection.  Safe to call more than once."""
        if self._conn is None:
            return
        try:
            self._conn.close()
        except sqlite3.Error as exc:
            logger.warning(f"[STORE] Error closing database: {exc}")
        self._conn = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, url: str, normalized_text: str, raw_html: str) -> ArchivedPage:
        """
        Archive one page: write the raw payload, then upsert the record.

        Args:
            url: Page URL (record key)
            normalized_text: Converted Markdown
            raw_html: Serialized page markup

        Returns:
            The record as stored

        Raises:
            StoreError: store not open, payload write or upsert failed
        """
        if self._conn is None:
            raise StoreError(url, message="store is not open")

        now = datetime.now(timezone.utc)

        try:
            payload_path = self._write_payload(url, raw_html, now)
        except (OSError, ValueError) as exc:
            raise StoreError(url, exc, f"payload write failed: {exc}") from exc

        page = ArchivedPage(
            url=url,
            archived_at=now.isoformat(timespec='microseconds'),
            normalized_text=normalized_text,
            raw_content_ref=str(payload_path),
        )

        try:
            with self._conn:
                self._conn.execute(
                    _UPSERT,
                    (page.url, page.archived_at, page.normalized_text, page.raw_content_ref),
                )
        except (sqlite3.Error, ValueError) as exc:
            # UnicodeEncodeError (a ValueError) for text sqlite cannot encode
            raise StoreError(url, exc, f"record upsert failed: {exc}") from exc

        logger.info(f"[STORE] Snapshot stored: {url} → {payload_path.name}")
        return page

    def _write_payload(self, url: str, raw_html: str, when: datetime) -> Path:
        """
        Write the payload to a fresh file; never overwrites an existing one.

        Lone surrogates (legal in DOM strings) are written as-is with
        ``surrogatepass`` so the payload keeps the markup the browser served.
        """
        self.snapshots_dir.mkdir(parents=True, exist_ok=True)
        base = payload_filename(url, when)
        stem, suffix = base[:-len(".html")], ".html"

        path = self.snapshots_dir / base
        attempt = 0
        while True:
            try:
                with open(path, 'x', encoding='utf-8', errors='surrogatepass') as f:
                    f.write(raw_html)
                return path.resolve()
            except FileExistsError:
                attempt += 1
                path = self.snapshots_dir / f"{stem}-{attempt}{suffix}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, url: str) -> Optional[ArchivedPage]:
        """Return the record for ``url`` or None."""
        row = self._query(f"SELECT {_COLUMNS} FROM snapshots WHERE url = ?", (url,)).fetchone()
        return ArchivedPage(*row) if row else None

    def list_pages(self) -> List[ArchivedPage]:
        """All records in insertion order."""
        rows = self._query(f"SELECT {_COLUMNS} FROM snapshots ORDER BY id").fetchall()
        return [ArchivedPage(*row) for row in rows]

    def count(self) -> int:
        return self._query("SELECT COUNT(*) FROM snapshots").fetchone()[0]

    def _query(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        if self._conn is None:
            raise StoreError(self.db_path, message="store is not open")
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StoreError(self.db_path, exc, f"query failed: {exc}") from exc
