"""
Document retrieval components for the RAG pipeline.

Components:
    - chunker: Split document text into overlapping, token-bounded chunks
    - embeddings: Generate vector embeddings via an OpenAI-compatible API
    - retriever: Similarity and document-balanced comparison retrieval
"""

from docqa.retrieval.chunker import TextChunk, chunk_text, token_counter
from docqa.retrieval.embeddings import OpenAIEmbedder
from docqa.retrieval.retriever import Retriever, is_comparison_query

__all__ = [
    "TextChunk",
    "chunk_text",
    "token_counter",
    "OpenAIEmbedder",
    "Retriever",
    "is_comparison_query",
]
