"""
Shopify admin API fetcher.

Pages through REST resources using cursor pagination: each response carries
a Link header whose rel="next" entry holds the page_info for the next call.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import requests

from .base import BaseFetcher, Document, strip_html

logger = logging.getLogger(__name__)

_NEXT_PAGE_RE = re.compile(r'<[^>]*[?&]page_info=([^>&]*)[^>]*>;\s*rel="next"')

RESOURCES = ('products', 'pages', 'policies', 'price_rules')


class FetchError(Exception):
    """Raised when a remote source cannot be read."""
    pass


def next_page_info(link_header: Optional[str]) -> Optional[str]:
    """
    Extract the next page cursor from a Link header.

    Args:
        link_header: Raw Link header value (may be None)

    Returns:
        page_info for the next page, or None on the last page
    """
    if not link_header:
        return None
    match = _NEXT_PAGE_RE.search(link_header)
    return match.group(1) if match else None


class ShopifyFetcher(BaseFetcher):
    """Fetch products, pages, policies and price rules from a Shopify store."""

    PAGE_LIMIT = 250

    def __init__(self, store_domain: str, api_key: str, password: str,
                 api_version: str = "2025-01",
                 session: Optional[requests.Session] = None,
                 timeout: int = 30):
        """
        Initialize fetcher.

        Args:
            store_domain: Store host, e.g. my-shop.myshopify.com
            api_key: Private app API key
            password: Private app password (admin access token)
            api_version: Admin API version
            session: Optional requests session (connection pooling, tests)
            timeout: Request timeout in seconds
        """
        if not store_domain:
            raise ValueError("Shopify store domain is required")

        host = store_domain.replace('https://', '').replace('http://', '').rstrip('/')
        self.base_url = f"https://{host}/admin/api/{api_version}"
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.auth = (api_key, password)
        self.session.headers.update({
            'Content-Type': 'application/json',
            'X-Shopify-Access-Token': password or '',
        })

    def fetch_all(self, resource: str, **query) -> List[Dict[str, Any]]:
        """
        Fetch every item of a REST resource, following pagination.

        Args:
            resource: Resource name (products, pages, policies, price_rules)
            **query: Extra query parameters for the first request

        Returns:
            All items across pages

        Raises:
            FetchError: On HTTP or network failure
        """
        url = f"{self.base_url}/{resource}.json"
        params: Dict[str, Any] = {'limit': self.PAGE_LIMIT, **query}
        results: List[Dict[str, Any]] = []
        page_info = None

        while True:
            if page_info:
                # Shopify rejects filters alongside page_info
                params = {'limit': self.PAGE_LIMIT, 'page_info': page_info}

            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                raise FetchError(f"Failed to fetch {resource}: {e}") from e

            items = response.json().get(resource, [])
            results.extend(items)

            page_info = next_page_info(response.headers.get('Link'))
            if not page_info:
                break

        logger.info("Fetched %d %s from Shopify", len(results), resource)
        return results

    def fetch_store_data(self) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch all indexed resources keyed by resource name."""
        return {resource: self.fetch_all(resource) for resource in RESOURCES}

    def documents(self) -> List[Document]:
        """Fetch the store and convert it to Documents."""
        return store_documents(self.fetch_store_data())


def _body_or_title(item: Dict[str, Any]) -> str:
    return strip_html(item.get('body_html') or item.get('body') or '') or (item.get('title') or '')


def store_documents(data: Dict[str, List[Dict[str, Any]]]) -> List[Document]:
    """
    Convert raw Shopify resources to Documents.

    Args:
        data: Mapping of resource name to items, as from fetch_store_data

    Returns:
        Documents for products, pages, policies and discounts
    """
    docs = []

    for product in data.get('products', []):
        docs.append(Document(
            id=f"product-{product['id']}",
            text=_body_or_title(product),
            metadata={'source': 'shopify-product', 'handle': product.get('handle', ''),
                      'title': product.get('title', '')},
        ))

    for page in data.get('pages', []):
        docs.append(Document(
            id=f"page-{page['id']}",
            text=_body_or_title(page),
            metadata={'source': 'shopify-page', 'handle': page.get('handle', '')},
        ))

    for policy in data.get('policies', []):
        # Policies have no numeric id in the REST API
        key = policy.get('id') or policy.get('handle')
        docs.append(Document(
            id=f"policy-{key}",
            text=_body_or_title(policy),
            metadata={'source': 'shopify-policy', 'handle': policy.get('handle', '')},
        ))

    for rule in data.get('price_rules', []):
        docs.append(Document(
            id=f"discount-{rule['id']}",
            text=str(rule.get('title') or rule.get('value') or ''),
            metadata={'source': 'shopify-discount', 'rule': str(rule['id'])},
        ))

    return [doc for doc in docs if doc.text.strip()]
