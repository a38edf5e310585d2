"""Public storefront page fetcher."""

import base64
import logging
import re
from typing import List, Optional

import requests

from .base import BaseFetcher, Document, strip_html

logger = logging.getLogger(__name__)

_MAIN_RE = re.compile(r'<(main|article)\b[^>]*>(.*?)</\1\s*>', re.IGNORECASE | re.DOTALL)
_BODY_RE = re.compile(r'<body\b[^>]*>(.*?)</body\s*>', re.IGNORECASE | re.DOTALL)


def extract_page_text(page_html: str) -> str:
    """
    Extract readable text from a page.

    Text of <main>/<article> elements is preferred; the whole <body> is
    used when they are missing or empty.
    """
    main_parts = [strip_html(match.group(2)) for match in _MAIN_RE.finditer(page_html)]
    main_text = '\n\n'.join(part for part in main_parts if part)
    if main_text:
        return main_text

    body = _BODY_RE.search(page_html)
    return strip_html(body.group(1) if body else page_html)


def page_id(url: str) -> str:
    """Stable Document id for a public URL."""
    encoded = base64.urlsafe_b64encode(url.encode('utf-8')).decode('ascii').rstrip('=')
    return f"public-{encoded}"


class PublicPageFetcher(BaseFetcher):
    """Fetch public storefront pages over HTTP."""

    def __init__(self, urls: List[str], session: Optional[requests.Session] = None,
                 timeout: int = 10, audit_logger=None):
        """
        Initialize page fetcher.

        Args:
            urls: Page URLs to fetch
            session: Optional requests session
            timeout: Request timeout in seconds
            audit_logger: Optional AuditLogger for egress events
        """
        self.urls = [url for url in urls if url]
        self.timeout = timeout
        self.audit_logger = audit_logger

        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': 'storefront-rag/1.0',
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8'
        })

    def documents(self) -> List[Document]:
        """
        Fetch every URL; failing pages are logged and skipped.

        Returns:
            One Document per page with non-empty text
        """
        docs = []

        for url in self.urls:
            try:
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                logger.error("Error fetching %s: %s", url, e)
                if self.audit_logger:
                    self.audit_logger.log_error('page_fetch_error', str(e), {'url': url})
                continue

            if self.audit_logger:
                self.audit_logger.log_network_egress(
                    method='GET',
                    url=url,
                    status_code=response.status_code,
                    response_size=len(response.content),
                    execution_time_ms=response.elapsed.total_seconds() * 1000
                )

            text = extract_page_text(response.text)
            if not text:
                logger.warning("No text extracted from %s", url)
                continue

            docs.append(Document(
                id=page_id(url),
                text=text,
                metadata={'source': 'public', 'url': url},
            ))

        return docs
