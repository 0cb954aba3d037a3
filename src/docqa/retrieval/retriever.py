"""
Retrieval engine: turns a question into a ranked list of chunks.

Two modes:
    - similarity: one thresholded similarity search, optionally restricted
      to a set of documents
    - comparison: when the question asks to compare and more than one
      document is selected, the leading chunks of every selected document
      are pulled in reading order so each document contributes material
"""

import asyncio
import logging
import re
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from docqa.exceptions import RetrievalStoreError
from docqa.models import Chunk, RetrievalResult
from docqa.retrieval.embeddings import OpenAIEmbedder
from docqa.store import UNKNOWN_TITLE, ChunkStore

logger = logging.getLogger(__name__)

COMPARISON_PATTERN = re.compile(
    r"\b(differences?|differ|compare[ds]?|comparing|comparison|contrast|"
    r"between|versus|vs|both|each|all)\b",
    re.IGNORECASE,
)


def is_comparison_query(query: str) -> bool:
    """Whether the question's wording asks to contrast several documents."""
    return bool(COMPARISON_PATTERN.search(query))


def per_document_quota(limit: int, document_count: int, minimum: int = 2) -> int:
    """
    Chunks to take from each document in comparison mode.

    ``limit`` is split evenly (rounded down, so the total stays within the
    limit) but never below ``minimum`` per document.
    """
    if document_count <= 0:
        return 0
    return max(minimum, limit // document_count)


class Retriever:
    """
    Retrieve relevant chunks for a question.

    Example:
        >>> retriever = Retriever(embedder, store)
        >>> results = await retriever.retrieve("What is the refund policy?", limit=5, threshold=0.5)
    """

    def __init__(
        self,
        embedder: OpenAIEmbedder,
        store: ChunkStore,
        min_chunks_per_document: int = 2,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.min_chunks_per_document = min_chunks_per_document

    async def retrieve(
        self,
        query: str,
        limit: int,
        threshold: float,
        document_ids: Optional[list[str]] = None,
    ) -> list[RetrievalResult]:
        """
        Retrieve chunks for a question.

        Args:
            query: The user's question
            limit: Maximum number of chunks in similarity mode
            threshold: Minimum cosine similarity in similarity mode
            document_ids: Optional allow-list of documents

        Returns:
            Ranked results; an empty list means no relevant context

        Raises:
            EmbeddingProviderError: If the query cannot be embedded
            RetrievalStoreError: If the similarity search fails
        """
        query_vector = await self.embedder.embed(query)

        if is_comparison_query(query) and document_ids and len(document_ids) > 1:
            return await self._retrieve_per_document(query_vector, limit, document_ids)

        results = await asyncio.to_thread(
            self.store.similarity_search,
            query_vector,
            threshold,
            limit,
            document_ids,
        )
        logger.info(
            f"Similarity search returned {len(results)} chunks "
            f"(limit={limit}, threshold={threshold}, documents={len(document_ids or [])})"
        )
        return results

    async def _retrieve_per_document(
        self,
        query_vector: NDArray[np.float32],
        limit: int,
        document_ids: list[str],
    ) -> list[RetrievalResult]:
        """
        Take the leading chunks of each selected document, in document order.

        A document whose fetch fails is skipped and logged; the rest still
        contribute. Similarity is reported against the query but does not
        affect selection or order.
        """
        quota = per_document_quota(limit, len(document_ids), self.min_chunks_per_document)
        logger.info(
            f"Comparison query across {len(document_ids)} documents ({quota} chunks each)"
        )

        per_document = await asyncio.gather(
            *(self._fetch_document(doc_id, quota, query_vector) for doc_id in document_ids)
        )
        results = [result for group in per_document for result in group]

        logger.info(f"Comparison retrieval returned {len(results)} chunks")
        return results

    async def _fetch_document(
        self,
        document_id: str,
        quota: int,
        query_vector: NDArray[np.float32],
    ) -> list[RetrievalResult]:
        try:
            chunks = await asyncio.to_thread(self.store.find_by_document, document_id, quota)
            document = await asyncio.to_thread(self.store.get_document, document_id)
        except RetrievalStoreError as e:
            logger.warning(f"Skipping document {document_id} in comparison: {e!s}")
            return []

        if not chunks:
            logger.warning(f"Skipping document {document_id} in comparison: no chunks")
            return []

        title = document.title if document and document.title.strip() else UNKNOWN_TITLE
        return [
            RetrievalResult(
                chunk_id=chunk.id,
                document_id=chunk.document_id,
                document_title=title,
                content=chunk.content,
                chunk_index=chunk.chunk_index,
                similarity=_cosine_similarity(query_vector, chunk),
            )
            for chunk in chunks
        ]


def _cosine_similarity(query_vector: NDArray[np.float32], chunk: Chunk) -> float:
    """Cosine similarity clamped to [0, 1]; 0.0 when the chunk has no vector."""
    if chunk.embedding is None:
        return 0.0
    vector = np.asarray(chunk.embedding, dtype=np.float32)
    denom = float(np.linalg.norm(query_vector) * np.linalg.norm(vector))
    if denom == 0:
        return 0.0
    return min(max(float(np.dot(query_vector, vector)) / denom, 0.0), 1.0)
