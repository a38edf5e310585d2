"""
Storefront RAG - retrieval-augmented chat for an e-commerce storefront.

Fetches store, product, policy, page and PDF content, chunks it, indexes
the chunks in a vector store and answers chat messages with product
lookup, a static collection map and retrieval-augmented completion.
"""

__version__ = "1.0.0"

from storefront_rag.config import RAGConfig, load_config
from storefront_rag.loader import Document
from storefront_rag.retriever.chunker import Chunk, InvalidArgument, TextChunker, chunk

__all__ = ['RAGConfig', 'load_config', 'Document', 'Chunk', 'InvalidArgument',
           'TextChunker', 'chunk']
