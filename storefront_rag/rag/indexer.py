"""Indexing pipeline: documents -> chunks -> embeddings -> vector store."""

from dataclasses import dataclass
from typing import List, Optional
import logging
import math
import time

from storefront_rag.loader.base import Document
from storefront_rag.retriever.chunker import TextChunker
from storefront_rag.retriever.vector_store import VectorRecord

logger = logging.getLogger(__name__)


@dataclass
class IndexStats:
    documents: int = 0
    chunks: int = 0
    batches: int = 0


class Indexer:
    """Chunks, embeds and upserts documents in batches."""

    def __init__(self, chunker: TextChunker, embedder, vector_store,
                 audit_logger=None, batch_size: int = 100):
        """
        Initialize indexer.

        Args:
            chunker: Configured TextChunker
            embedder: Object with embed_texts(list) -> list of vectors
            vector_store: Object with upsert(records, embeddings)
            audit_logger: Optional AuditLogger
            batch_size: Documents per upsert batch
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.chunker = chunker
        self.embedder = embedder
        self.vector_store = vector_store
        self.audit = audit_logger
        self.batch_size = batch_size

    def build_records(self, document: Document) -> List[VectorRecord]:
        """
        Chunk one document into vector records.

        Record ids are ``{document.id}#{index}``; metadata is the document's
        metadata plus provenance and the chunk text itself.
        """
        records = []
        for chunk in self.chunker.chunk_document(document):
            metadata = dict(document.metadata)
            metadata.update({
                'source_id': chunk.source_id,
                'chunk_index': chunk.index,
                'chunk_text': chunk.text,
            })
            records.append(VectorRecord(id=chunk.id, text=chunk.text, metadata=metadata))

        if self.audit:
            self.audit.log_document_ingestion(
                source_id=document.id,
                source=str(document.metadata.get('source', 'unknown')),
                num_chunks=len(records),
            )
        return records

    def index(self, documents: List[Document]) -> IndexStats:
        """
        Index documents in batches of ``batch_size``.

        Args:
            documents: Documents to index

        Returns:
            Counts of documents, chunks and batches written
        """
        stats = IndexStats(documents=len(documents))
        total_batches = math.ceil(len(documents) / self.batch_size)

        for batch_num, start in enumerate(range(0, len(documents), self.batch_size), 1):
            batch_start = time.time()
            records: List[VectorRecord] = []
            for document in documents[start:start + self.batch_size]:
                records.extend(self.build_records(document))

            if records:
                embeddings = self.embedder.embed_texts([r.text for r in records])
                self.vector_store.upsert(records, embeddings)

            elapsed_ms = (time.time() - batch_start) * 1000
            stats.chunks += len(records)
            stats.batches += 1
            logger.info("Upserted batch %d/%d (%d vectors)", batch_num, total_batches, len(records))

            if self.audit:
                self.audit.log_vector_upsert(
                    batch=batch_num,
                    total_batches=total_batches,
                    num_vectors=len(records),
                    execution_time_ms=elapsed_ms,
                )

        logger.info("Indexing complete: %d documents, %d chunks", stats.documents, stats.chunks)
        return stats


def run_indexing(config_dict: dict, audit_logger=None,
                 documents: Optional[List[Document]] = None) -> IndexStats:
    """
    Run a full indexing pass from configuration.

    Args:
        config_dict: Configuration dictionary
        audit_logger: Optional AuditLogger
        documents: Pre-fetched documents; fetched from configured sources if None

    Returns:
        IndexStats for the run
    """
    from storefront_rag.loader import load_documents
    from storefront_rag.retriever.chunker import get_chunker_from_config
    from storefront_rag.retriever.embedder import get_embedding_manager
    from storefront_rag.retriever.vector_store import get_vector_store

    if documents is None:
        documents = load_documents(config_dict, audit_logger=audit_logger)

    vector_store = get_vector_store(config_dict.get('vector_store') or {})
    indexer = Indexer(
        chunker=get_chunker_from_config(config_dict.get('chunking') or {}),
        embedder=get_embedding_manager(
            config_dict.get('embedding') or {}, expected_dim=vector_store.dimension()
        ),
        vector_store=vector_store,
        audit_logger=audit_logger,
        batch_size=(config_dict.get('indexing') or {}).get('batch_size', 100),
    )
    return indexer.index(documents)
