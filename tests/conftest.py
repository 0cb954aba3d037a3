"""
Pytest configuration and shared fixtures.

Provides common fixtures for:
    - Configuration with test values
    - A word-count tokenizer (no tiktoken download needed)
    - A keyword embedder and a scripted completion model
    - Stores populated with sample documents
"""

import re
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from docqa.cache import AnswerCache
from docqa.chat import ChatOrchestrator
from docqa.models import Chunk, Document
from docqa.retrieval.retriever import Retriever
from docqa.service import DocQAService
from docqa.store import FAISSChunkStore

VOCABULARY = [
    "shipping",
    "delivery",
    "refund",
    "return",
    "warranty",
    "repair",
    "battery",
    "price",
]
"""Each keyword owns one embedding dimension; the last dimension is a small baseline."""

DIMENSION = len(VOCABULARY) + 1


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def mock_settings():
    """Provide test settings without requiring .env file."""
    with patch.dict(
        "os.environ",
        {
            "OPENAI_API_KEY": "test-api-key",
            "OPENAI_BASE_URL": "https://api.openai.com/v1",
            "EMBEDDING_MODEL": "text-embedding-3-small",
            "EMBEDDING_DIMENSION": str(DIMENSION),
            "CHAT_MODEL": "gpt-4o-mini",
            "CHUNK_SIZE": "40",
            "CHUNK_OVERLAP": "5",
            "ENABLE_TRACING": "false",
        },
    ):
        from docqa.config import Settings
        yield Settings()


@pytest.fixture
def word_counter():
    """Length function counting whitespace-separated words."""
    return lambda text: len(text.split())


# =============================================================================
# Test Doubles
# =============================================================================

def keyword_vector(text: str) -> np.ndarray:
    """Deterministic embedding: keyword counts plus a small constant baseline."""
    words = re.findall(r"[a-z]+", text.lower())
    vector = np.zeros(DIMENSION, dtype=np.float32)
    for word in words:
        for i, keyword in enumerate(VOCABULARY):
            if word.startswith(keyword):
                vector[i] += 1.0
    vector[-1] = 0.1
    return vector / np.linalg.norm(vector)


class KeywordEmbedder:
    """Async embedder double that records every text it embeds."""

    def __init__(self) -> None:
        self.dimension = DIMENSION
        self.calls: list[list[str]] = []

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append([text])
        return keyword_vector(text)

    async def embed_batch(self, texts: list[str]) -> np.ndarray:
        self.calls.append(list(texts))
        if not texts:
            return np.zeros((0, DIMENSION), dtype=np.float32)
        return np.vstack([keyword_vector(t) for t in texts])


@pytest.fixture
def fake_embedder():
    return KeywordEmbedder()


@pytest.fixture
def fake_llm():
    """Completion model double with canned replies."""
    llm = MagicMock()
    llm.invoke.return_value = "Generated answer."
    llm.invoke_json.return_value = {
        "overview": "A short overview.",
        "keyFindings": ["First finding", "Second finding"],
        "keywords": ["refund", "shipping"],
    }
    return llm


# =============================================================================
# Sample Data Fixtures
# =============================================================================

SAMPLE_DOCUMENTS = {
    "shipping-policy": [
        "Standard shipping takes five business days.",
        "Express delivery arrives the next day for an extra price.",
        "International shipping is available to most countries.",
    ],
    "refund-policy": [
        "A refund is issued within fourteen days of a return.",
        "Items must be returned unused to qualify for a refund.",
    ],
    "warranty-terms": [
        "The warranty covers manufacturing defects for two years.",
        "Battery repair is covered during the first year only.",
        "Warranty claims require proof of purchase.",
        "Repair turnaround is usually one week.",
    ],
}


def make_chunks(document_id: str, contents: list[str]) -> list[Chunk]:
    return [
        Chunk(
            id=f"{document_id}:{i}",
            document_id=document_id,
            chunk_index=i,
            content=content,
            embedding=keyword_vector(content),
        )
        for i, content in enumerate(contents)
    ]


@pytest.fixture
def empty_store():
    return FAISSChunkStore(dimension=DIMENSION)


@pytest.fixture
def populated_store():
    """A store holding the three sample documents, owned by user-1."""
    store = FAISSChunkStore(dimension=DIMENSION)
    for doc_id, contents in SAMPLE_DOCUMENTS.items():
        store.add_document(Document(id=doc_id, title=f"{doc_id}.md", owner_id="user-1"))
        store.insert_batch(make_chunks(doc_id, contents))
    return store


@pytest.fixture
def make_service(fake_embedder, fake_llm, word_counter):
    """Factory for a service wired with test doubles around a given store."""

    def _make(store, **overrides) -> DocQAService:
        retriever = Retriever(fake_embedder, store)
        orchestrator = ChatOrchestrator(retriever, store, fake_llm)
        options = {
            "chunk_size": 40,
            "chunk_overlap": 5,
            "length_function": word_counter,
        }
        options.update(overrides)
        return DocQAService(
            store=store,
            embedder=fake_embedder,
            orchestrator=orchestrator,
            cache=AnswerCache(max_size=100, default_ttl=3600),
            **options,
        )

    return _make


@pytest.fixture
def dimension():
    return DIMENSION


@pytest.fixture
def embed_text():
    """The keyword embedding function used by the fake embedder and sample chunks."""
    return keyword_vector


@pytest.fixture
def sample_documents():
    return SAMPLE_DOCUMENTS


@pytest.fixture
def chunk_factory():
    """Build embedded chunks for a document id from a list of contents."""
    return make_chunks
