"""
Chat orchestrator: retrieval, prompting and source attribution.

Turns a question into an ``Answer`` (retrieve, build context, call the
completion model once, attribute sources per document) and a document into
a summary built from its leading chunks in reading order.
"""

import asyncio
import logging
import math
from typing import Optional

from docqa.chat.prompts import (
    ANALYSIS_PROMPT,
    ANALYSIS_SYSTEM_PROMPT,
    ANSWER_PROMPT,
    COMPARISON_SYSTEM_PROMPT,
    DEFAULT_SYSTEM_PROMPT,
    NO_CONTENT_SUMMARY,
    NO_CONTEXT_ANSWER,
    SUMMARY_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    format_context,
)
from docqa.exceptions import CompletionProviderError
from docqa.llm import LLMProtocol
from docqa.models import Answer, Chunk, Document, DocumentSummary, RetrievalResult, Source
from docqa.retrieval.retriever import Retriever, is_comparison_query
from docqa.store import UNKNOWN_TITLE, ChunkStore
from docqa.tracing import traced

logger = logging.getLogger(__name__)

ANALYSIS_MAX_CHARS = 40_000
WORDS_PER_MINUTE = 200


def build_sources(results: list[RetrievalResult]) -> list[Source]:
    """
    Group consumed chunks by document.

    Sources keep the order in which each document first appears in
    ``results``; each carries its chunk count and best similarity.
    """
    sources: dict[str, Source] = {}
    for result in results:
        source = sources.get(result.document_id)
        if source is None:
            sources[result.document_id] = Source(
                document_id=result.document_id,
                document_title=result.document_title,
                chunks_used=1,
                top_similarity=result.similarity,
            )
        else:
            source.chunks_used += 1
            source.top_similarity = max(source.top_similarity, result.similarity)
    return list(sources.values())


def reading_time_minutes(word_count: int) -> int:
    if word_count <= 0:
        return 0
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


class ChatOrchestrator:
    """
    Answer questions and summarize documents from stored chunks.

    Example:
        >>> orchestrator = ChatOrchestrator(retriever, store, llm)
        >>> answer = await orchestrator.answer("What changed in v2?", limit=5, threshold=0.5)
        >>> answer.sources[0].document_title
        'release-notes.md'
    """

    def __init__(
        self,
        retriever: Retriever,
        store: ChunkStore,
        llm: LLMProtocol,
        chat_temperature: float = 0.7,
        chat_max_tokens: int = 800,
        summary_temperature: float = 0.5,
        summary_max_tokens: int = 500,
    ) -> None:
        self.retriever = retriever
        self.store = store
        self.llm = llm
        self.chat_temperature = chat_temperature
        self.chat_max_tokens = chat_max_tokens
        self.summary_temperature = summary_temperature
        self.summary_max_tokens = summary_max_tokens

    @traced("chat.answer")
    async def answer(
        self,
        question: str,
        limit: int,
        threshold: float,
        document_ids: Optional[list[str]] = None,
    ) -> Answer:
        """
        Answer a question from the most relevant chunks.

        An empty retrieval is a successful answer with no sources.

        Raises:
            EmbeddingProviderError: If the question cannot be embedded
            RetrievalStoreError: If the similarity search fails
            CompletionProviderError: If the model call fails
        """
        results = await self.retriever.retrieve(question, limit, threshold, document_ids)
        if not results:
            logger.info("No relevant context found; returning fixed answer")
            return Answer(answer=NO_CONTEXT_ANSWER, sources=[], chunks_used=0)

        system_prompt = (
            COMPARISON_SYSTEM_PROMPT if is_comparison_query(question) else DEFAULT_SYSTEM_PROMPT
        )
        user_prompt = ANSWER_PROMPT.format(question=question, context=format_context(results))

        text = await asyncio.to_thread(
            self.llm.invoke,
            system_prompt,
            user_prompt,
            temperature=self.chat_temperature,
            max_tokens=self.chat_max_tokens,
        )

        sources = build_sources(results)
        logger.info(f"Answered from {len(results)} chunks across {len(sources)} documents")
        return Answer(answer=text, sources=sources, chunks_used=len(results))

    @traced("chat.summarize")
    async def summarize(self, document_id: str, max_chunks: int) -> Answer:
        """
        Summarize a document from its first ``max_chunks`` chunks in reading order.

        A document with no chunks yields a successful "no content" answer.
        """
        chunks, document = await self._leading_chunks(document_id, max_chunks)
        if not chunks:
            return Answer(answer=NO_CONTENT_SUMMARY, sources=[], chunks_used=0)

        text = "\n\n".join(chunk.content for chunk in chunks)
        summary = await asyncio.to_thread(
            self.llm.invoke,
            SUMMARY_SYSTEM_PROMPT,
            SUMMARY_PROMPT.format(text=text),
            temperature=self.summary_temperature,
            max_tokens=self.summary_max_tokens,
        )

        source = Source(
            document_id=document_id,
            document_title=_title_of(document),
            chunks_used=len(chunks),
            top_similarity=1.0,
        )
        logger.info(f"Summarized document {document_id} from {len(chunks)} chunks")
        return Answer(answer=summary, sources=[source], chunks_used=len(chunks))

    @traced("chat.analyze")
    async def analyze(self, document_id: str, max_chunks: int) -> DocumentSummary:
        """
        Produce a structured summary: overview, key findings, keywords and reading time.

        Input to the model is capped at 40,000 characters. Word count uses the
        retained document text when available, otherwise the chunk text.

        Raises:
            CompletionProviderError: If the model call fails or returns no usable overview
        """
        chunks, document = await self._leading_chunks(document_id, max_chunks)
        if not chunks:
            return DocumentSummary(document_id=document_id, overview=NO_CONTENT_SUMMARY)

        text = "\n\n".join(chunk.content for chunk in chunks)
        full_text = document.content if document and document.content else text
        word_count = len(full_text.split())

        data = await asyncio.to_thread(
            self.llm.invoke_json,
            ANALYSIS_SYSTEM_PROMPT,
            ANALYSIS_PROMPT.format(text=text[:ANALYSIS_MAX_CHARS]),
            temperature=self.summary_temperature,
            max_tokens=self.summary_max_tokens,
        )

        overview = str(data.get("overview") or "").strip()
        if not overview:
            raise CompletionProviderError("Analysis response has no overview")

        return DocumentSummary(
            document_id=document_id,
            overview=overview,
            key_findings=_string_list(data.get("keyFindings")),
            keywords=_string_list(data.get("keywords")),
            word_count=word_count,
            reading_time_minutes=reading_time_minutes(word_count),
            chunks_used=len(chunks),
        )

    async def _leading_chunks(
        self, document_id: str, max_chunks: int
    ) -> tuple[list[Chunk], Optional[Document]]:
        chunks = await asyncio.to_thread(self.store.find_by_document, document_id, max_chunks)
        document = await asyncio.to_thread(self.store.get_document, document_id)
        return chunks, document


def _title_of(document: Optional[Document]) -> str:
    if document is None or not document.title.strip():
        return UNKNOWN_TITLE
    return document.title


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]
