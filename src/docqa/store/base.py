"""Chunk store contract consumed by ingestion, retrieval and summarization."""

from typing import Optional, Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from docqa.models import Chunk, Document, RetrievalResult


@runtime_checkable
class ChunkStore(Protocol):
    """
    Persistence for documents and their embedded chunks.

    Implementations must be safe to call from worker threads.
    """

    def add_document(self, document: Document) -> None:
        """Register a document before its chunks are inserted."""
        ...

    def get_document(self, document_id: str) -> Optional[Document]:
        ...

    def list_documents(self, owner_id: Optional[str] = None) -> list[Document]:
        ...

    def delete_document(self, document_id: str) -> bool:
        """Delete a document and cascade to its chunks. Returns False if absent."""
        ...

    def insert_batch(self, chunks: list[Chunk]) -> None:
        """Insert all chunks of a document, or nothing at all."""
        ...

    def find_by_document(self, document_id: str, limit: Optional[int] = None) -> list[Chunk]:
        """Chunks of one document in ordinal order, optionally only the first ``limit``."""
        ...

    def delete_by_document(self, document_id: str) -> int:
        ...

    def similarity_search(
        self,
        query_vector: NDArray[np.float32],
        threshold: float,
        limit: int,
        document_ids: Optional[list[str]] = None,
    ) -> list[RetrievalResult]:
        """
        Chunks with cosine similarity >= threshold, best first, at most ``limit``.

        A non-empty ``document_ids`` restricts results to those documents.
        """
        ...
