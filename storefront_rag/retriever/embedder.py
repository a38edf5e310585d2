"""
Embedding generation for chunks and chat queries.

Primary: sentence-transformers.
Fallback: deterministic hash embeddings (always available).

The model is imported lazily so that chunking and fetching never pay for
loading torch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional
import hashlib
import logging
import math

logger = logging.getLogger(__name__)

BACKENDS = {"auto", "sentence_transformers", "hash"}


def _l2_normalize(vec: List[float]) -> List[float]:
    norm = math.sqrt(sum(x * x for x in vec)) or 1.0
    return [x / norm for x in vec]


def _hash_embedding(text: str, dim: int) -> List[float]:
    """
    Deterministic embedding based on SHA256.
    Produces a stable unit-length vector of size `dim`.
    """
    out: List[float] = []
    counter = 0
    while len(out) < dim:
        h = hashlib.sha256(f"{counter}|{text}".encode("utf-8", errors="ignore")).digest()
        # Map bytes -> floats in [-1, 1]
        for b in h:
            out.append((b / 127.5) - 1.0)
            if len(out) >= dim:
                break
        counter += 1
    return _l2_normalize(out[:dim])


@dataclass
class EmbeddingConfig:
    model: str = "sentence-transformers/all-MiniLM-L6-v2"
    backend: str = "auto"  # "auto" | "sentence_transformers" | "hash"
    fallback_dim: int = 64  # must match the collection dimension


class EmbeddingManager:
    """
    Embeds texts with sentence-transformers, falling back to hash vectors.
    """

    def __init__(self, cfg: Optional[EmbeddingConfig] = None):
        self.cfg = cfg or EmbeddingConfig()
        self._model = None
        self.embedding_dim: Optional[int] = None
        self.backend_active: str = "hash"

        if self.cfg.backend not in BACKENDS:
            raise ValueError(f"Unknown embeddings backend: {self.cfg.backend}")

        if self.cfg.backend in {"auto", "sentence_transformers"}:
            self._try_init_sentence_transformers()

        if self._model is None:
            if self.cfg.backend == "sentence_transformers":
                raise RuntimeError(
                    f"sentence-transformers backend requested but model {self.cfg.model} "
                    "could not be loaded"
                )
            self.embedding_dim = int(self.cfg.fallback_dim)
            self.backend_active = "hash"
            logger.warning(
                "Using deterministic hash embeddings (dim=%s). "
                "Retrieval quality will be reduced.",
                self.embedding_dim,
            )

    @staticmethod
    def _load_sentence_transformer():
        from sentence_transformers import SentenceTransformer  # lazy import
        return SentenceTransformer

    def _try_init_sentence_transformers(self) -> None:
        try:
            model_cls = self._load_sentence_transformer()
        except ImportError as e:
            logger.info("sentence-transformers unavailable: %s", e)
            return

        try:
            self._model = model_cls(self.cfg.model)
            self.embedding_dim = int(self._model.get_sentence_embedding_dimension())
            self.backend_active = "sentence_transformers"
        except (OSError, ValueError, RuntimeError) as e:
            logger.info("Failed to initialize sentence-transformers model: %s", e)
            self._model = None
            self.embedding_dim = None

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts; one vector per text, same order."""
        if not texts:
            return []

        if self._model is not None:
            embeddings = self._model.encode(texts, convert_to_numpy=True)
            return embeddings.tolist()

        dim = int(self.embedding_dim or self.cfg.fallback_dim)
        return [_hash_embedding(t, dim) for t in texts]

    def embed_single(self, text: str) -> List[float]:
        return self.embed_texts([text])[0]


def get_embedding_manager(config: dict, *, expected_dim: Optional[int] = None) -> EmbeddingManager:
    """
    Create an EmbeddingManager from the ``embedding`` config section.

    Pass expected_dim (the dimension of vectors already in the store) so
    that the hash fallback produces vectors the store accepts.

    Raises:
        ValueError: If the loaded model's dimension differs from expected_dim
    """
    cfg = EmbeddingConfig(
        model=config.get("model", "sentence-transformers/all-MiniLM-L6-v2"),
        backend=config.get("backend", "auto"),
        fallback_dim=int(config.get("fallback_dim", expected_dim or 64)),
    )
    mgr = EmbeddingManager(cfg)

    if expected_dim is None or mgr.embedding_dim == expected_dim:
        return mgr

    if mgr.backend_active == "hash":
        mgr.embedding_dim = int(expected_dim)
        logger.warning("Adjusted fallback embedding dim to expected_dim=%s", expected_dim)
        return mgr

    raise ValueError(
        f"Model {cfg.model} produces {mgr.embedding_dim}-dim vectors but the "
        f"vector store holds {expected_dim}-dim vectors; re-index the collection"
    )
