"""Content fetchers producing Documents for indexing."""

import logging
from typing import Any, Dict, List
from .base import BaseFetcher, Document, strip_html
from .shopify import FetchError, ShopifyFetcher
from .web import PublicPageFetcher
from .pdf import PDFFetcher

logger = logging.getLogger(__name__)


def build_fetchers(config_dict: Dict[str, Any], audit_logger=None) -> List[BaseFetcher]:
    """
    Build fetchers for every configured source.

    Args:
        config_dict: Configuration dictionary
        audit_logger: Optional AuditLogger passed to HTTP fetchers

    Returns:
        Fetchers in ingestion order: Shopify, public pages, PDFs
    """
    fetchers: List[BaseFetcher] = []

    shopify_cfg = config_dict.get('shopify') or {}
    if shopify_cfg.get('store_domain'):
        fetchers.append(ShopifyFetcher(
            store_domain=shopify_cfg['store_domain'],
            api_key=shopify_cfg.get('api_key', ''),
            password=shopify_cfg.get('password', ''),
            api_version=shopify_cfg.get('api_version', '2025-01'),
        ))

    sources = config_dict.get('sources') or {}
    public_urls = sources.get('public_urls') or []
    if public_urls:
        fetchers.append(PublicPageFetcher(public_urls, audit_logger=audit_logger))

    for i, pdf_cfg in enumerate(sources.get('pdfs') or []):
        if isinstance(pdf_cfg, str):
            pdf_cfg = {'path': pdf_cfg}
        fetchers.append(PDFFetcher(
            pdf_cfg['path'],
            id_prefix=pdf_cfg.get('id_prefix', f"instr{i}" if i else "instr"),
        ))

    return fetchers


def load_documents(config_dict: Dict[str, Any], audit_logger=None) -> List[Document]:
    """
    Load all documents from configured sources.

    A failing source is logged and skipped so one bad PDF or an API outage
    does not block the remaining sources.

    Args:
        config_dict: Configuration dictionary
        audit_logger: Optional AuditLogger

    Returns:
        Combined list of Documents
    """
    all_docs = []

    for fetcher in build_fetchers(config_dict, audit_logger=audit_logger):
        name = type(fetcher).__name__
        try:
            docs = fetcher.documents()
        except (FetchError, FileNotFoundError, ValueError) as e:
            logger.warning("Failed to load source %s: %s", name, e)
            if audit_logger:
                audit_logger.log_error('source_load_error', str(e), {'fetcher': name})
            continue

        logger.info("%s produced %d documents", name, len(docs))
        all_docs.extend(docs)

    return all_docs


__all__ = [
    'BaseFetcher',
    'Document',
    'FetchError',
    'PDFFetcher',
    'PublicPageFetcher',
    'ShopifyFetcher',
    'build_fetchers',
    'load_documents',
    'strip_html',
]
