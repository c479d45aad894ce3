"""
Tests for store.py.

Covers:
  1. Upsert-by-URL uniqueness (one record per URL, latest archive wins)
  2. Payload files (written first, never overwritten, collision-safe names)
  3. Failure reporting as StoreError
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from archiver.errors import StoreError
from archiver.store import SnapshotStore, payload_filename


# ====================================================================
# 1. Uniqueness
# ====================================================================

class TestUpsert:
    """At most one record per URL, reflecting the most recent archive."""

    def test_put_creates_record(self, store):
        page = store.put("https://a.example/x", "# X", "<h1>X</h1>")
        assert store.count() == 1
        stored = store.get("https://a.example/x")
        assert stored == page
        assert stored.normalized_text == "# X"

    def test_rearchive_replaces_record(self, store):
        first = store.put("https://a.example/x", "old", "<p>old</p>")
        second = store.put("https://a.example/x", "new", "<p>new</p>")
        assert store.count() == 1
        stored = store.get("https://a.example/x")
        assert stored.normalized_text == "new"
        assert stored.raw_content_ref == second.raw_content_ref
        assert stored.raw_content_ref != first.raw_content_ref
        assert stored.archived_at >= first.archived_at

    def test_repeated_archives_stay_unique(self, store):
        for i in range(5):
            store.put("https://a.example/x", f"v{i}", f"<p>v{i}</p>")
            assert store.count() == 1
        assert store.get("https://a.example/x").normalized_text == "v4"

    def test_distinct_urls_distinct_records(self, store):
        store.put("https://a.example/x", "x", "<p>x</p>")
        store.put("https://a.example/y", "y", "<p>y</p>")
        assert [p.url for p in store.list_pages()] == [
            "https://a.example/x", "https://a.example/y"
        ]

    def test_get_missing_returns_none(self, store):
        assert store.get("https://nowhere.example/") is None

    def test_records_survive_reopen(self, tmp_path):
        db, snaps = str(tmp_path / "a.db"), str(tmp_path / "snaps")
        with SnapshotStore(db, snaps) as store:
            store.put("https://a.example/x", "x", "<p>x</p>")
        with SnapshotStore(db, snaps) as store:
            assert store.count() == 1
            assert store.get("https://a.example/x").normalized_text == "x"

    def test_schema_enforces_unique_url(self, store):
        conn = sqlite3.connect(store.db_path)
        try:
            conn.execute(
                "INSERT INTO snapshots (url, archived_at, normalized_text, raw_content_ref) "
                "VALUES ('https://a.example/x', 't', 'n', 'r')"
            )
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO snapshots (url, archived_at, normalized_text, raw_content_ref) "
                    "VALUES ('https://a.example/x', 't', 'n', 'r')"
                )
        finally:
            conn.close()


# ====================================================================
# 2. Payload files
# ====================================================================

class TestPayload:
    """Raw markup is stored on disk and referenced by the record."""

    def test_payload_content_written(self, store):
        page = store.put("https://a.example/x", "x", "<html>raw</html>")
        path = Path(page.raw_content_ref)
        assert path.is_file()
        assert path.read_text(encoding="utf-8") == "<html>raw</html>"
        assert path.parent == Path(store.snapshots_dir).resolve()

    def test_old_payload_kept_on_rearchive(self, store):
        first = store.put("https://a.example/x", "a", "<p>a</p>")
        second = store.put("https://a.example/x", "b", "<p>b</p>")
        assert Path(first.raw_content_ref).read_text(encoding="utf-8") == "<p>a</p>"
        assert Path(second.raw_content_ref).read_text(encoding="utf-8") == "<p>b</p>"

    def test_payload_filename_shape(self):
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        name = payload_filename("https://a.example/x?y=1", when)
        assert name == f"a_example_x_y_1_{int(when.timestamp() * 1000)}.html"

    def test_long_urls_get_bounded_distinct_names(self):
        when = datetime.now(timezone.utc)
        a = payload_filename("https://a.example/" + "p" * 400 + "/one", when)
        b = payload_filename("https://a.example/" + "p" * 400 + "/two", when)
        assert a != b
        assert len(a) < 200

    def test_same_millisecond_does_not_overwrite(self, store, monkeypatch):
        fixed = "a_example_x_1700000000000.html"
        monkeypatch.setattr("archiver.store.payload_filename", lambda url, when: fixed)
        first = store.put("https://a.example/x", "a", "<p>a</p>")
        second = store.put("https://a.example/x", "b", "<p>b</p>")
        assert first.raw_content_ref != second.raw_content_ref
        assert Path(first.raw_content_ref).read_text(encoding="utf-8") == "<p>a</p>"


# ====================================================================
# 3. Failures
# ====================================================================

class TestStoreErrors:
    """Write failures surface as StoreError with the URL attached."""

    def test_put_on_closed_store(self, tmp_path):
        store = SnapshotStore(str(tmp_path / "a.db"), str(tmp_path / "snaps"))
        with pytest.raises(StoreError) as exc_info:
            store.put("https://a.example/x", "x", "<p>x</p>")
        assert exc_info.value.url == "https://a.example/x"

    def test_payload_write_failure(self, store, monkeypatch):
        def broken_write(url, raw_html, when):
            raise PermissionError("read-only filesystem")

        monkeypatch.setattr(store, "_write_payload", broken_write)
        with pytest.raises(StoreError) as exc_info:
            store.put("https://a.example/x", "x", "<p>x</p>")
        assert "payload write failed" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, PermissionError)
        assert store.count() == 0

    def test_upsert_failure_leaves_orphan_payload(self, store):
        """Payload first, record second: a failed upsert leaves no record."""
        store._conn.execute("DROP TABLE snapshots")
        with pytest.raises(StoreError) as exc_info:
            store.put("https://a.example/x", "x", "<p>x</p>")
        assert "record upsert failed" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, sqlite3.Error)

        payloads = list(Path(store.snapshots_dir).iterdir())
        assert len(payloads) == 1
        assert payloads[0].read_text(encoding="utf-8") == "<p>x</p>"

    def test_upsert_failure_keeps_prior_record(self, store):
        first = store.put("https://a.example/x", "old", "<p>old</p>")
        with pytest.raises(StoreError) as exc_info:
            store.put("https://a.example/x", "bad \ud800 text", "<p>new</p>")
        assert isinstance(exc_info.value.cause, UnicodeEncodeError)

        assert store.count() == 1
        assert store.get("https://a.example/x") == first
        payloads = sorted(p.read_text(encoding="utf-8")
                          for p in Path(store.snapshots_dir).iterdir())
        assert payloads == ["<p>new</p>", "<p>old</p>"]

    def test_payload_keeps_lone_surrogate(self, store):
        page = store.put("https://a.example/x", "x", "<p>a\ud800b</p>")
        assert Path(page.raw_content_ref).read_bytes() == b"<p>a\xed\xa0\x80b</p>"

    def test_open_failure_raises_store_error(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        store = SnapshotStore(str(tmp_path / "a.db"), str(blocker / "snaps"))
        with pytest.raises(StoreError):
            store.open()

    def test_close_is_idempotent(self, tmp_path):
        store = SnapshotStore(str(tmp_path / "a.db"), str(tmp_path / "snaps")).open()
        store.close()
        store.close()
        assert not store.is_open
