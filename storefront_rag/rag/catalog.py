"""
Product and collection lookup for the chat engine.

Matching works on accent-folded word tokens so "cadena de plata" finds
"Cadena Plata Fina" and "anillos" finds the rings collection.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import re
import time
import unicodedata

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r'[a-z0-9]+')


def fold(text: str) -> str:
    """Lowercase and strip diacritics."""
    decomposed = unicodedata.normalize('NFKD', text or '')
    return ''.join(c for c in decomposed if not unicodedata.combining(c)).lower()


def tokenize(text: str, min_length: int = 3) -> List[str]:
    """Accent-folded word tokens of at least min_length characters."""
    return [t for t in _WORD_RE.findall(fold(text)) if len(t) >= min_length]


def _token_hit(title_token: str, message_tokens: set) -> bool:
    if title_token in message_tokens:
        return True
    # Plural/singular and truncated forms: "anillo" ~ "anillos"
    if len(title_token) < 4:
        return False
    return any(
        len(m) >= 4 and (m.startswith(title_token) or title_token.startswith(m))
        for m in message_tokens
    )


class ProductCatalog:
    """
    In-memory product list owned by the chat engine.

    Built explicitly (from a list or a fetcher) and refreshed on demand;
    there is no module-level product cache.
    """

    def __init__(self, products: Optional[List[Dict[str, Any]]] = None,
                 fuzzy_threshold: float = 0.6):
        """
        Args:
            products: Shopify product dicts (title, handle, variants)
            fuzzy_threshold: Minimum fraction of title tokens found in a message
        """
        self.fuzzy_threshold = fuzzy_threshold
        self._fetcher = None
        self.products: List[Dict[str, Any]] = []
        self._title_tokens: List[List[str]] = []
        self.set_products(products or [])

    @classmethod
    def from_fetcher(cls, fetcher, fuzzy_threshold: float = 0.6) -> 'ProductCatalog':
        """Build a catalog loaded from a ShopifyFetcher."""
        catalog = cls(fuzzy_threshold=fuzzy_threshold)
        catalog._fetcher = fetcher
        catalog.refresh()
        return catalog

    def set_products(self, products: List[Dict[str, Any]]):
        self.products = [p for p in products if p.get('title')]
        self._title_tokens = [sorted(set(tokenize(p['title']))) for p in self.products]

    def refresh(self):
        """Reload products from the fetcher this catalog was built with."""
        if self._fetcher is None:
            raise RuntimeError("Catalog has no fetcher to refresh from")
        self.set_products(self._fetcher.fetch_all('products'))
        logger.info("Product catalog loaded: %d products", len(self.products))

    def __len__(self) -> int:
        return len(self.products)

    def find(self, message: str) -> Optional[Dict[str, Any]]:
        """
        Find the product a message refers to.

        Exact title containment wins (longest title first); otherwise the
        product whose title tokens best cover the message tokens, if the
        coverage reaches the fuzzy threshold.

        Args:
            message: User message

        Returns:
            Product dict or None
        """
        folded = fold(message)

        exact = [p for p in self.products if fold(p['title']) in folded]
        if exact:
            return max(exact, key=lambda p: len(p['title']))

        return self._fuzzy_find(message)

    def _fuzzy_find(self, message: str) -> Optional[Dict[str, Any]]:
        message_tokens = set(tokenize(message))
        if not message_tokens:
            return None

        best: Optional[Tuple[float, int, int]] = None
        best_index = -1

        for i, title_tokens in enumerate(self._title_tokens):
            if not title_tokens:
                continue
            hits = sum(1 for t in title_tokens if _token_hit(t, message_tokens))
            if hits < min(2, len(title_tokens)):
                continue
            score = hits / len(title_tokens)
            if score < self.fuzzy_threshold:
                continue
            # Higher coverage, then more matched words, then catalog order
            key = (score, hits, -i)
            if best is None or key > best:
                best = key
                best_index = i

        return self.products[best_index] if best is not None else None


def product_url(store_url: str, product: Dict[str, Any]) -> str:
    return f"{store_url.rstrip('/')}/products/{product.get('handle', '')}"


def product_price(product: Dict[str, Any]) -> Optional[str]:
    variants = product.get('variants') or []
    return variants[0].get('price') if variants else None


class CollectionMap:
    """Static keyword table pointing messages at storefront collections."""

    def __init__(self, collections: Optional[Dict[str, Any]] = None):
        """
        Args:
            collections: handle -> list of keywords, or
                handle -> {'title': str, 'keywords': [str]}
        """
        self.entries: List[Tuple[str, str, List[str]]] = []
        for handle, spec in (collections or {}).items():
            if isinstance(spec, dict):
                title = spec.get('title') or handle.replace('-', ' ').title()
                keywords = spec.get('keywords') or []
            else:
                title = handle.replace('-', ' ').title()
                keywords = list(spec or [])
            folded = [' '.join(_WORD_RE.findall(fold(k))) for k in keywords]
            self.entries.append((handle, title, [k for k in folded if k]))

    def match(self, message: str) -> Optional[Tuple[str, str]]:
        """
        Find the collection whose keyword appears in the message.

        Keywords match on whole words. The longest matching keyword wins.

        Returns:
            (handle, title) or None
        """
        padded = f" {' '.join(_WORD_RE.findall(fold(message)))} "
        best = None
        best_length = 0
        for handle, title, keywords in self.entries:
            for keyword in keywords:
                if f" {keyword} " in padded and len(keyword) > best_length:
                    best = (handle, title)
                    best_length = len(keyword)
        return best


class QueryCache:
    """Per-message retrieval cache with a fixed time-to-live."""

    def __init__(self, ttl_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any):
        now = self._clock()
        self._evict_expired(now)
        self._entries[key] = (now + self.ttl_seconds, value)

    def _evict_expired(self, now: float):
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
