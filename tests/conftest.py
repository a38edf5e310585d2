"""
Pytest configuration and fixtures.

Ensures storefront_rag package can be imported from tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to Python path so tests can import storefront_rag
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))


class FakeEmbedder:
    """Deterministic embedder: vector derived from text length and vowels."""

    def __init__(self):
        self.calls = []

    def embed_texts(self, texts):
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_single(self, text):
        return self.embed_texts([text])[0]

    @staticmethod
    def _vector(text):
        return [float(len(text)), float(sum(text.count(v) for v in 'aeiou')), 1.0]


class FakeVectorStore:
    """Records upserts and replays canned query matches."""

    def __init__(self, matches=None):
        self.upserts = []
        self.queries = []
        self.matches = matches or []

    def upsert(self, records, embeddings):
        assert len(records) == len(embeddings)
        self.upserts.append((list(records), list(embeddings)))
        return len(records)

    def query(self, embedding, k=3):
        self.queries.append((embedding, k))
        return self.matches[:k]

    def dimension(self):
        for _, embeddings in self.upserts:
            if embeddings:
                return len(embeddings[0])
        return None


class FakeLLM:
    """Returns a fixed answer and keeps the prompts it saw."""

    model_path = 'fake-model.gguf'

    def __init__(self, answer='We ship within 3 business days.'):
        self.answer = answer
        self.prompts = []

    def generate(self, prompt, max_tokens=None, temperature=None):
        self.prompts.append(prompt)
        return {'text': f"  {self.answer}  ", 'tokens': 7, 'time_ms': 1.0}

    def count_tokens(self, text):
        return len(text.split())


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_store():
    return FakeVectorStore()


@pytest.fixture
def fake_llm():
    return FakeLLM()
