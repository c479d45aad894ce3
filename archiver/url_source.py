"""
URL Source
Reads the ordered list of URLs to archive from a CSV file.
"""

import csv
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import SourceError
from .utils import is_valid_url

logger = logging.getLogger(__name__)

# Header names recognised as the URL column (case-insensitive, first match wins)
URL_COLUMNS = ('url', 'link', 'href')


def _find_url_column(fieldnames: Sequence[str], columns: Sequence[str]) -> Optional[str]:
    normalized = {(name or '').strip().lower(): name for name in fieldnames}
    for column in columns:
        if column.lower() in normalized:
            return normalized[column.lower()]
    return None


def load_urls(path, columns: Sequence[str] = URL_COLUMNS) -> List[str]:
    """
    Load URLs from a CSV file with a header row.

    Rows keep their file order. Blank cells are skipped; cells that are not
    absolute http(s) URLs are skipped with a warning.

    Args:
        path: CSV file path
        columns: Header names accepted as the URL column

    Returns:
        List of URLs in input order

    Raises:
        SourceError: file missing or unreadable, no URL column, or no URLs
    """
    csv_path = Path(path)
    if not csv_path.is_file():
        raise SourceError(f"URL source not found: {csv_path}")

    urls: List[str] = []
    skipped = 0
    try:
        with open(csv_path, 'r', encoding='utf-8-sig', newline='') as f:
            reader = csv.DictReader(f)
            column = _find_url_column(reader.fieldnames or [], columns)
            if column is None:
                raise SourceError(
                    f"No URL column in {csv_path} "
                    f"(expected one of: {', '.join(columns)})"
                )

            for line_no, row in enumerate(reader, start=2):
                value = (row.get(column) or '').strip()
                if not value:
                    continue
                if not is_valid_url(value):
                    logger.warning(f"[SOURCE] Line {line_no}: not an absolute URL, skipped: {value[:80]}")
                    skipped += 1
                    continue
                urls.append(value)
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise SourceError(f"Cannot read URL source {csv_path}: {exc}") from exc

    if not urls:
        raise SourceError(f"No URLs found in {csv_path}")

    logger.info(f"[SOURCE] Loaded {len(urls)} URLs from {csv_path}"
                + (f" ({skipped} invalid skipped)" if skipped else ""))
    return urls


def validate_urls(urls: Sequence[str]) -> List[str]:
    """Filter explicitly supplied URLs the same way ``load_urls`` filters rows."""
    valid = []
    for value in urls:
        value = (value or '').strip()
        if not value:
            continue
        if not is_valid_url(value):
            logger.warning(f"[SOURCE] Not an absolute URL, skipped: {value[:80]}")
            continue
        valid.append(value)
    if not valid:
        raise SourceError("No valid URLs supplied")
    return valid
