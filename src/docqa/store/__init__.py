"""
Chunk persistence.

Components:
    - base: ChunkStore protocol (documents, chunk batches, similarity search)
    - faiss_store: FAISS-backed implementation with on-disk persistence
"""

from docqa.store.base import ChunkStore
from docqa.store.faiss_store import UNKNOWN_TITLE, FAISSChunkStore

__all__ = [
    "ChunkStore",
    "FAISSChunkStore",
    "UNKNOWN_TITLE",
]
