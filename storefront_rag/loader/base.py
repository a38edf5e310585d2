"""
Base content fetcher interface and the Document schema.

Every fetcher yields Documents:
- id: stable source identifier (e.g. product-123, instr:4)
- text: plain text, markup already stripped
- metadata: flat mapping of scalars (source, handle, url, ...)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List
import html
import re


@dataclass(frozen=True)
class Document:
    """A unit of source content to be chunked and indexed."""

    id: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


_DROP_BLOCKS_RE = re.compile(r'<(script|style|noscript|template)\b[^>]*>.*?</\1\s*>',
                             re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r'<!--.*?-->', re.DOTALL)
_BREAK_TAGS_RE = re.compile(r'<\s*(br|/p|/div|/li|/h[1-6]|/tr|/section|/article)\b[^>]*>',
                            re.IGNORECASE)
_TAG_RE = re.compile(r'<[^>]+>')
_SPACES_RE = re.compile(r'[ \t\r\f\v]+')
_BLANK_LINES_RE = re.compile(r'\n\s*\n+')


def strip_html(markup: str) -> str:
    """
    Convert HTML to plain text.

    Scripts, styles and comments are dropped, block-closing tags become
    line breaks, entities are unescaped and whitespace is collapsed.

    Args:
        markup: HTML fragment or page

    Returns:
        Plain text
    """
    if not markup:
        return ''

    text = _COMMENT_RE.sub('', markup)
    text = _DROP_BLOCKS_RE.sub('', text)
    text = _BREAK_TAGS_RE.sub('\n', text)
    text = _TAG_RE.sub(' ', text)
    text = html.unescape(text)
    text = _SPACES_RE.sub(' ', text)
    lines = [line.strip() for line in text.split('\n')]
    text = '\n'.join(lines)
    text = _BLANK_LINES_RE.sub('\n\n', text)
    return text.strip()


class BaseFetcher(ABC):
    """Abstract base for content fetchers."""

    @abstractmethod
    def documents(self) -> List[Document]:
        """
        Fetch source content as Documents.

        Returns:
            List of Documents with id, text and flat metadata
        """
        pass
