"""
docqa: Retrieval-augmented question answering over uploaded documents.

Documents are split into token-bounded chunks, embedded, and stored in a
FAISS index. Questions are answered by a completion model from the most
similar chunks, with per-document source attribution. Comparison questions
across several documents pull material from every selected document.

Key Components:
    - retrieval: Chunking, embeddings, similarity and comparison retrieval
    - store: Chunk store protocol and FAISS implementation
    - chat: Prompting, answer and summary orchestration
    - cache: Single-flight TTL answer cache
    - service: Caller-facing operations (ingest, ask, summarize)
    - api: FastAPI REST endpoints
    - tracing: Arize Phoenix observability integration

Example:
    >>> from docqa.service import build_service
    >>> service = build_service()
    >>> await service.ingest(title="handbook.md", owner_id="u1", content=text)
    >>> answer = await service.ask("How many vacation days do I get?")
    >>> print(answer.answer, answer.sources)
"""

__version__ = "0.1.0"

from docqa.config import settings

__all__ = [
    "__version__",
    "settings",
]
