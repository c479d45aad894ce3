"""
Archive Errors
==============
Failure taxonomy for an archive run.

Fatal to the whole run:
    - ``SourceError``  — URL list missing, unreadable or empty
    - ``SessionError`` raised while opening the browser session

Contained to one URL:
    - ``SessionError`` raised while opening a page handle
    - ``FetchError``   — navigation / extraction failure
    - ``TransformError`` — markup conversion failure
    - ``StoreError``   — payload write or record upsert failure
"""

from typing import Optional


class ArchiveError(Exception):
    """Base class for every error raised by the archiver."""


class SourceError(ArchiveError):
    """The URL source could not supply any URLs."""


class SessionError(ArchiveError):
    """Opening or closing the remote browser session (or a page) failed."""


class _UrlError(ArchiveError):
    """An error tied to a single URL, carrying its underlying cause."""

    def __init__(self, url: str, cause: Optional[BaseException] = None, message: str = ""):
        self.url = url
        self.cause = cause
        if not message:
            message = str(cause) if cause is not None else "unknown error"
        super().__init__(f"{url}: {message}")
        self.message = message


class FetchError(_UrlError):
    """Navigation or content extraction failed for one URL."""


class StoreError(_UrlError):
    """Persisting the payload or the record failed for one URL."""


class TransformError(_UrlError):
    """Markup conversion failed for one URL (the default converter never raises)."""
