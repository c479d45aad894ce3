"""
Content Transformer
Converts rendered HTML into normalized Markdown text.
"""

import logging
import re

from bs4 import BeautifulSoup, Comment
from markdownify import ATX, MarkdownConverter

logger = logging.getLogger(__name__)

_BS_PARSER = "lxml"


class ContentTransformer:
    """
    Pure HTML → Markdown conversion.

    Deterministic for a given input; never raises.  Markup the converter
    cannot handle degrades to the document's plain visible text.
    """

    # Tags removed before conversion (never carry readable content)
    STRIP_TAGS = {
        'script', 'style', 'noscript', 'template', 'svg', 'canvas', 'iframe'
    }

    def __init__(self, heading_style: str = ATX, bullets: str = "-"):
        self.heading_style = heading_style
        self.bullets = bullets

    def transform(self, html: str) -> str:
        """
        Convert HTML to Markdown.

        Args:
            html: Serialized page markup

        Returns:
            Normalized Markdown text ("" for empty input)
        """
        if not html or not html.strip():
            return ""

        try:
            soup = BeautifulSoup(html, _BS_PARSER)
            self._remove_unwanted_elements(soup)
        except Exception as e:
            logger.warning(f"[TRANSFORM] Could not parse markup ({e}) — using raw text")
            return self._normalize(re.sub(r'<[^>]+>', ' ', html))

        try:
            converter = MarkdownConverter(
                heading_style=self.heading_style,
                bullets=self.bullets,
            )
            text = converter.convert_soup(soup)
        except Exception as e:
            logger.warning(f"[TRANSFORM] Markdown conversion failed ({e}) — using plain text")
            text = soup.get_text(separator='\n', strip=True)

        return self._normalize(text)

    def _remove_unwanted_elements(self, soup: BeautifulSoup) -> None:
        """Remove comments, scripts, styles and other non-content elements."""
        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()
        for tag in self.STRIP_TAGS:
            for element in soup.find_all(tag):
                element.decompose()

    @staticmethod
    def _normalize(text: str) -> str:
        """Trim trailing spaces, collapse runs of blank lines, drop lone surrogates."""
        text = text.encode('utf-8', errors='replace').decode('utf-8')
        lines = [line.rstrip() for line in text.splitlines()]
        text = '\n'.join(lines)
        text = re.sub(r'\n{3,}', '\n\n', text)
        return text.strip()


_default_transformer = ContentTransformer()


def html_to_markdown(html: str) -> str:
    """Convert HTML to Markdown with the default settings."""
    return _default_transformer.transform(html)
