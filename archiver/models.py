"""
Archive data model.
"""

from dataclasses import dataclass


@dataclass
class ArchivedPage:
    """
    One archived page record, unique per URL.

    ``raw_content_ref`` is the path of the raw markup payload written for
    the archive that produced this record.
    """
    url: str
    archived_at: str
    normalized_text: str
    raw_content_ref: str
