"""
Utility Functions
URL validation and filesystem-safe naming helpers.
"""

import hashlib
import re
from urllib.parse import urlparse

# Keep payload names well under common 255-byte filename limits
_MAX_SANITIZED_LEN = 150


def is_valid_url(url: str) -> bool:
    """Check if URL is a well-formed absolute http(s) URL."""
    try:
        parsed = urlparse(url)
        return all([parsed.scheme in ('http', 'https'), parsed.netloc])
    except Exception:
        return False


def url_hash(url: str) -> str:
    """Short stable hash of a URL (used to keep truncated names distinct)."""
    return hashlib.md5(url.encode('utf-8')).hexdigest()[:10]


def sanitize_url(url: str) -> str:
    """
    Derive a filesystem-safe name from a URL.

    The scheme is dropped and every non-word character becomes ``_``.
    Long results are truncated and suffixed with a hash of the full URL
    so two long URLs sharing a prefix still map to different names.

    Examples:
        "https://a.example/x?y=1" -> "a_example_x_y_1"
    """
    name = re.sub(r'^https?://', '', url.strip(), flags=re.IGNORECASE)
    name = re.sub(r'\W', '_', name)
    if len(name) > _MAX_SANITIZED_LEN:
        name = f"{name[:_MAX_SANITIZED_LEN]}_{url_hash(url)}"
    return name or url_hash(url)
