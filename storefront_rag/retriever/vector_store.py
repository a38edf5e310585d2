"""Vector store client over a ChromaDB collection."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from pathlib import Path
import logging
import chromadb

logger = logging.getLogger(__name__)


@dataclass
class VectorRecord:
    """A chunk ready for upsert: id is ``{source_id}#{index}``."""

    id: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def _scalar_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Chroma accepts only str/int/float/bool values; stringify the rest."""
    clean = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            clean[key] = value
        else:
            clean[key] = str(value)
    return clean


class ChromaVectorStore:
    """Upsert and nearest-neighbour query over one collection."""

    def __init__(self, persist_dir: str = "./vectorstore/db",
                 collection_name: str = "storefront",
                 client: Optional[Any] = None):
        """
        Initialize Chroma vector store.

        Args:
            persist_dir: Directory for persistent storage
            collection_name: Collection name
            client: Optional pre-built Chroma client
        """
        if client is None:
            Path(persist_dir).mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(path=persist_dir)

        self.client = client
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"}
        )

    def upsert(self, records: List[VectorRecord], embeddings: List[List[float]]) -> int:
        """
        Insert or replace records with their embeddings.

        Args:
            records: Records to store
            embeddings: One vector per record, same order

        Returns:
            Number of records written
        """
        if len(records) != len(embeddings):
            raise ValueError(
                f"Got {len(records)} records but {len(embeddings)} embeddings"
            )
        if not records:
            return 0

        self.collection.upsert(
            ids=[r.id for r in records],
            embeddings=embeddings,
            documents=[r.text for r in records],
            metadatas=[_scalar_metadata(r.metadata) for r in records],
        )
        return len(records)

    def query(self, query_embedding: List[float], k: int = 3) -> List[Dict[str, Any]]:
        """
        Find the k nearest chunks.

        Args:
            query_embedding: Query embedding vector
            k: Number of results

        Returns:
            Matches with id, text, metadata and distance, nearest first
        """
        results = self.collection.query(
            query_embeddings=[query_embedding],
            n_results=k,
            include=["documents", "metadatas", "distances"],
        )

        matches = []
        distances = results.get('distances') or [[]]
        for i, record_id in enumerate(results['ids'][0]):
            matches.append({
                'id': record_id,
                'text': results['documents'][0][i],
                'metadata': results['metadatas'][0][i] or {},
                'distance': distances[0][i] if distances[0] else None,
            })

        return matches

    def count(self) -> int:
        return self.collection.count()

    def dimension(self) -> Optional[int]:
        """Dimension of stored vectors, or None for an empty collection."""
        result = self.collection.get(limit=1, include=["embeddings"])
        embeddings = result.get("embeddings")
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])


def get_vector_store(config: dict) -> ChromaVectorStore:
    """Get configured vector store."""
    return ChromaVectorStore(
        persist_dir=config.get('path', './vectorstore/db'),
        collection_name=config.get('collection', 'storefront'),
    )
