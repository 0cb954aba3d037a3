"""
FAISS-backed chunk store.

Keeps chunk vectors in a FAISS inner-product index (cosine similarity on
unit-length vectors) and documents/chunk rows alongside, with persistence to
``<path>.index`` and ``<path>.json``.
"""

import json
import logging
import threading
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Optional

import faiss
import numpy as np
from numpy.typing import NDArray

from docqa.config import settings
from docqa.exceptions import RetrievalStoreError
from docqa.models import Chunk, Document, RetrievalResult

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Document"


class FAISSChunkStore:
    """
    FAISS-based chunk store for document retrieval.

    Uses IndexIDMap2 over IndexFlatIP so chunks can be removed per document
    and their vectors reconstructed after a reload. All public methods take a
    re-entrant lock, so the store may be shared by worker threads.

    Example:
        >>> store = FAISSChunkStore(dimension=1536)
        >>> store.add_document(document)
        >>> store.insert_batch(chunks)
        >>> results = store.similarity_search(query_vector, threshold=0.5, limit=5)
        >>> store.save("data/store/chunks")
    """

    def __init__(
        self,
        dimension: int | None = None,
        path: str | Path | None = None,
    ) -> None:
        """
        Initialize an empty store.

        Args:
            dimension: Vector dimension (default from settings)
            path: If set, the store is saved here after every mutation
        """
        self.dimension = dimension or settings.embedding_dimension
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._reset()

    def _reset(self) -> None:
        self._index = faiss.IndexIDMap2(faiss.IndexFlatIP(self.dimension))
        self._documents: dict[str, Document] = {}
        self._chunks: dict[int, Chunk] = {}
        self._by_document: dict[str, list[int]] = defaultdict(list)
        self._next_id = 0

    @property
    def size(self) -> int:
        """Number of vectors in the index."""
        return int(self._index.ntotal)

    # =========================================================================
    # Documents
    # =========================================================================

    def add_document(self, document: Document) -> None:
        with self._lock:
            if document.id in self._documents:
                raise RetrievalStoreError(f"Document already exists: {document.id}")
            self._documents[document.id] = document
            self._autosave()

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._lock:
            return self._documents.get(document_id)

    def list_documents(self, owner_id: Optional[str] = None) -> list[Document]:
        with self._lock:
            documents = [
                doc
                for doc in self._documents.values()
                if owner_id is None or doc.owner_id == owner_id
            ]
        return sorted(documents, key=lambda d: d.created_at)

    def delete_document(self, document_id: str) -> bool:
        with self._lock:
            if document_id not in self._documents:
                return False
            removed = self._remove_chunks(document_id)
            del self._documents[document_id]
            self._autosave()

        logger.info(f"Deleted document {document_id} ({removed} chunks)")
        return True

    # =========================================================================
    # Chunks
    # =========================================================================

    def insert_batch(self, chunks: list[Chunk]) -> None:
        """
        Insert a batch of chunks atomically.

        The whole batch is validated before anything is written: every
        document must be registered and have no chunks yet, each document's
        ordinals must be exactly 0..n-1, and every embedding must match the
        store dimension.

        Raises:
            RetrievalStoreError: If validation or the index write fails
        """
        if not chunks:
            return

        with self._lock:
            grouped: dict[str, list[Chunk]] = defaultdict(list)
            for chunk in chunks:
                grouped[chunk.document_id].append(chunk)

            for document_id, doc_chunks in grouped.items():
                if document_id not in self._documents:
                    raise RetrievalStoreError(f"Unknown document: {document_id}")
                if self._by_document.get(document_id):
                    raise RetrievalStoreError(f"Document already has chunks: {document_id}")
                indices = sorted(c.chunk_index for c in doc_chunks)
                if indices != list(range(len(doc_chunks))):
                    raise RetrievalStoreError(
                        f"Chunk indices for {document_id} must be contiguous from 0"
                    )

            for chunk in chunks:
                if chunk.embedding is None or np.shape(chunk.embedding) != (self.dimension,):
                    raise RetrievalStoreError(
                        f"Chunk {chunk.id} must have an embedding of dimension {self.dimension}"
                    )

            vectors = self._normalize_embeddings(
                np.vstack([c.embedding for c in chunks]).astype(np.float32)
            )
            ids = np.arange(self._next_id, self._next_id + len(chunks), dtype=np.int64)

            try:
                self._index.add_with_ids(np.ascontiguousarray(vectors), ids)
            except RuntimeError as e:
                raise RetrievalStoreError(f"Index write failed: {e!s}") from e

            for faiss_id, chunk, vector in zip(ids.tolist(), chunks, vectors):
                chunk.embedding = vector
                self._chunks[faiss_id] = chunk
                self._by_document[chunk.document_id].append(faiss_id)
            for faiss_ids in (self._by_document[d] for d in grouped):
                faiss_ids.sort(key=lambda fid: self._chunks[fid].chunk_index)

            self._next_id += len(chunks)
            self._autosave()

    def find_by_document(self, document_id: str, limit: Optional[int] = None) -> list[Chunk]:
        with self._lock:
            faiss_ids = self._by_document.get(document_id, [])
            if limit is not None:
                faiss_ids = faiss_ids[: max(limit, 0)]
            return [self._chunks[fid] for fid in faiss_ids]

    def delete_by_document(self, document_id: str) -> int:
        with self._lock:
            removed = self._remove_chunks(document_id)
            self._autosave()
            return removed

    def _remove_chunks(self, document_id: str) -> int:
        faiss_ids = self._by_document.get(document_id, [])
        if faiss_ids:
            try:
                self._index.remove_ids(np.array(faiss_ids, dtype=np.int64))
            except RuntimeError as e:
                raise RetrievalStoreError(f"Index delete failed: {e!s}") from e
            for fid in faiss_ids:
                del self._chunks[fid]
        self._by_document.pop(document_id, None)
        return len(faiss_ids)

    # =========================================================================
    # Search
    # =========================================================================

    def similarity_search(
        self,
        query_vector: NDArray[np.float32],
        threshold: float,
        limit: int,
        document_ids: Optional[list[str]] = None,
    ) -> list[RetrievalResult]:
        """
        Search for chunks similar to the query vector.

        Args:
            query_vector: Query vector of shape (dimension,)
            threshold: Minimum cosine similarity
            limit: Maximum number of results
            document_ids: Restrict to these documents when non-empty

        Returns:
            Results sorted by similarity descending (ties in reading order)

        Raises:
            RetrievalStoreError: If the query vector is invalid or search fails
        """
        if limit <= 0:
            return []

        query = np.asarray(query_vector, dtype=np.float32).reshape(1, -1)
        if query.shape[1] != self.dimension:
            raise RetrievalStoreError(
                f"Query vector must have dimension {self.dimension}, got {query.shape[1]}"
            )
        query = np.ascontiguousarray(self._normalize_embeddings(query))

        with self._lock:
            if self.size == 0:
                return []

            try:
                if document_ids:
                    scored = self._scan_documents(query[0], document_ids)
                else:
                    k = min(limit, self.size)
                    scores, ids = self._index.search(query, k)
                    scored = [
                        (int(fid), float(score))
                        for fid, score in zip(ids[0], scores[0])
                        if fid != -1
                    ]
            except RuntimeError as e:
                raise RetrievalStoreError(f"Similarity search failed: {e!s}") from e

            results: list[RetrievalResult] = []
            for fid, score in scored:
                similarity = min(max(score, 0.0), 1.0)
                if similarity < threshold:
                    continue
                results.append(self._to_result(self._chunks[fid], similarity))

        results.sort(key=lambda r: (-r.similarity, r.document_id, r.chunk_index))
        return results[:limit]

    def _scan_documents(self, query: NDArray[np.float32], document_ids: list[str]) -> list[tuple[int, float]]:
        """Exact scores for every chunk of the given documents."""
        faiss_ids = [fid for doc_id in dict.fromkeys(document_ids) for fid in self._by_document.get(doc_id, [])]
        if not faiss_ids:
            return []
        vectors = np.vstack([self._chunks[fid].embedding for fid in faiss_ids])
        scores = vectors @ query
        return list(zip(faiss_ids, scores.astype(float).tolist()))

    def _to_result(self, chunk: Chunk, similarity: float) -> RetrievalResult:
        document = self._documents.get(chunk.document_id)
        title = document.title.strip() if document and document.title.strip() else UNKNOWN_TITLE
        return RetrievalResult(
            chunk_id=chunk.id,
            document_id=chunk.document_id,
            document_title=title,
            content=chunk.content,
            chunk_index=chunk.chunk_index,
            similarity=similarity,
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def _autosave(self) -> None:
        if self.path is not None:
            self.save(self.path)

    def save(self, path: str | Path | None = None) -> None:
        """
        Save index and metadata to disk.

        Args:
            path: Base path for store files (default: store path or settings)
        """
        path = Path(path or self.path or settings.store_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock:
            index_file = path.with_suffix(".index")
            faiss.write_index(self._index, str(index_file))

            data = {
                "dimension": self.dimension,
                "next_id": self._next_id,
                "documents": [
                    {
                        "id": doc.id,
                        "title": doc.title,
                        "owner_id": doc.owner_id,
                        "created_at": doc.created_at.isoformat(),
                        "content": doc.content,
                        "metadata": doc.metadata,
                    }
                    for doc in self._documents.values()
                ],
                "chunks": [
                    {
                        "faiss_id": fid,
                        "id": chunk.id,
                        "document_id": chunk.document_id,
                        "chunk_index": chunk.chunk_index,
                        "content": chunk.content,
                        "metadata": chunk.metadata,
                    }
                    for fid, chunk in self._chunks.items()
                ],
            }

            metadata_file = path.with_suffix(".json")
            with metadata_file.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

    def load(self, path: str | Path | None = None) -> None:
        """
        Load index and metadata from disk, replacing current contents.

        Raises:
            FileNotFoundError: If store files don't exist
        """
        path = Path(path or self.path or settings.store_path)

        index_file = path.with_suffix(".index")
        if not index_file.exists():
            raise FileNotFoundError(f"Index file not found: {index_file}")
        metadata_file = path.with_suffix(".json")
        if not metadata_file.exists():
            raise FileNotFoundError(f"Metadata file not found: {metadata_file}")

        with metadata_file.open(encoding="utf-8") as f:
            data = json.load(f)

        with self._lock:
            self.dimension = int(data["dimension"])
            self._reset()
            self._index = faiss.read_index(str(index_file))
            self._next_id = int(data["next_id"])

            for doc in data["documents"]:
                self._documents[doc["id"]] = Document(
                    id=doc["id"],
                    title=doc["title"],
                    owner_id=doc["owner_id"],
                    created_at=datetime.fromisoformat(doc["created_at"]),
                    content=doc.get("content"),
                    metadata=doc.get("metadata") or {},
                )

            for row in data["chunks"]:
                fid = int(row["faiss_id"])
                self._chunks[fid] = Chunk(
                    id=row["id"],
                    document_id=row["document_id"],
                    chunk_index=int(row["chunk_index"]),
                    content=row["content"],
                    embedding=self._index.reconstruct(fid),
                    metadata=row.get("metadata") or {},
                )
                self._by_document[row["document_id"]].append(fid)

            for faiss_ids in self._by_document.values():
                faiss_ids.sort(key=lambda fid: self._chunks[fid].chunk_index)

        logger.info(f"Loaded chunk store from {path} ({len(self._documents)} documents, {self.size} chunks)")

    @classmethod
    def from_disk(
        cls,
        path: str | Path | None = None,
        autosave: bool = True,
        dimension: int | None = None,
    ) -> "FAISSChunkStore":
        """
        Create a store from saved files, or an empty one if none exist yet.

        Args:
            path: Base path of the store files (default from settings)
            autosave: Keep saving to ``path`` after every mutation
            dimension: Vector dimension of a new store (default from settings)
        """
        path = Path(path or settings.store_path)
        store = cls(dimension=dimension, path=path if autosave else None)
        if path.with_suffix(".index").exists():
            store.load(path)
        return store

    def _normalize_embeddings(self, embeddings: NDArray[np.float32]) -> NDArray[np.float32]:
        """
        Normalize embeddings to unit length for cosine similarity.

        Args:
            embeddings: Array of shape (n, dimension)

        Returns:
            Normalized embeddings of same shape
        """
        norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        # Avoid division by zero
        norms = np.where(norms == 0, 1, norms)
        return (embeddings / norms).astype(np.float32)
