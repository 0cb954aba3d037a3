"""
Caller-facing operations of the document Q&A core.

``DocQAService`` validates input, ingests documents, and routes questions,
summaries and analyses through the answer cache. ``build_service`` wires the
production collaborators from settings; tests construct the service directly
with doubles.

Usage:
    service = build_service()
    result = await service.ingest(title="handbook.md", owner_id="u1", content=text)
    answer = await service.ask("How many vacation days do I get?")
"""

import asyncio
import logging
import uuid
from typing import Any, Optional

from docqa.cache import AnswerCache, make_cache_key
from docqa.chat import ChatOrchestrator
from docqa.config import Settings, get_settings
from docqa.exceptions import DocumentNotFoundError, EmptyInputError
from docqa.llm import LLMProtocol, create_llm
from docqa.models import (
    Answer,
    AskRequest,
    Chunk,
    Document,
    DocumentInput,
    DocumentSummary,
    IngestResult,
    SummarizeRequest,
    parse_input,
)
from docqa.retrieval.chunker import LengthFunction, chunk_text, token_counter
from docqa.retrieval.embeddings import OpenAIEmbedder
from docqa.retrieval.retriever import Retriever
from docqa.store import ChunkStore, FAISSChunkStore
from docqa.tracing import add_span_attributes, traced

logger = logging.getLogger(__name__)


class DocQAService:
    """
    Ingest documents and answer questions about them.

    Ingest and delete clear the answer cache, since cached answers may
    depend on the changed corpus.
    """

    def __init__(
        self,
        store: ChunkStore,
        embedder: OpenAIEmbedder,
        orchestrator: ChatOrchestrator,
        cache: AnswerCache,
        chunk_size: int = 1200,
        chunk_overlap: int = 150,
        length_function: Optional[LengthFunction] = None,
        default_limit: int = 5,
        default_threshold: float = 0.5,
        default_summary_chunks: int = 30,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.orchestrator = orchestrator
        self.cache = cache
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.length_function = length_function
        self.default_limit = default_limit
        self.default_threshold = default_threshold
        self.default_summary_chunks = default_summary_chunks

    # =========================================================================
    # Documents
    # =========================================================================

    @traced("service.ingest")
    async def ingest(
        self,
        title: str,
        owner_id: str,
        content: Optional[str],
        metadata: Optional[dict[str, Any]] = None,
        keep_content: bool = False,
        document_id: Optional[str] = None,
    ) -> IngestResult:
        """
        Chunk, embed and store a document.

        Nothing is written when embedding fails; the document row is removed
        again when the chunk insert fails.

        Args:
            title: Display title, 1-200 characters
            owner_id: Owning user
            content: Extracted document text
            metadata: Optional free-form metadata
            keep_content: Retain the raw text on the document record
            document_id: Explicit id (a random one is generated otherwise)

        Returns:
            IngestResult with the new document id and its chunk count

        Raises:
            EmptyInputError: If content is missing or blank
            InputValidationError: If title or owner are invalid
            EmbeddingProviderError: If the chunks cannot be embedded
            RetrievalStoreError: If the document cannot be stored
        """
        if content is None or not content.strip():
            raise EmptyInputError("Document content is empty")
        data = parse_input(
            DocumentInput,
            title=title,
            owner_id=owner_id,
            content=content,
            metadata=metadata or {},
        )

        pieces = await asyncio.to_thread(
            chunk_text,
            data.content,
            self.chunk_size,
            self.chunk_overlap,
            self.length_function,
        )
        vectors = await self.embedder.embed_batch([piece.content for piece in pieces])

        document = Document(
            id=document_id or uuid.uuid4().hex,
            title=data.title,
            owner_id=data.owner_id,
            content=data.content if keep_content else None,
            metadata=data.metadata,
        )
        chunks = [
            Chunk(
                id=f"{document.id}:{piece.index}",
                document_id=document.id,
                chunk_index=piece.index,
                content=piece.content,
                embedding=vectors[i],
                metadata={"token_count": piece.token_count},
            )
            for i, piece in enumerate(pieces)
        ]

        await asyncio.to_thread(self.store.add_document, document)
        try:
            await asyncio.to_thread(self.store.insert_batch, chunks)
        except Exception:
            logger.error(f"Chunk insert failed for {document.id}; removing document")
            await asyncio.to_thread(self.store.delete_document, document.id)
            raise

        self.cache.clear()
        logger.info(f"Ingested document {document.id} ({data.title!r}, {len(chunks)} chunks)")
        return IngestResult(document_id=document.id, title=document.title, chunk_count=len(chunks))

    async def list_documents(self, owner_id: Optional[str] = None) -> list[Document]:
        return await asyncio.to_thread(self.store.list_documents, owner_id)

    async def delete_document(self, document_id: str, owner_id: str) -> None:
        """
        Delete a document and its chunks.

        Raises:
            DocumentNotFoundError: If the document is missing or owned by someone else
        """
        await self._require_document(document_id, owner_id)
        await asyncio.to_thread(self.store.delete_document, document_id)
        self.cache.clear()

    async def _require_document(self, document_id: str, owner_id: Optional[str]) -> Document:
        document = await asyncio.to_thread(self.store.get_document, document_id)
        if document is None or (owner_id is not None and not document.belongs_to(owner_id)):
            raise DocumentNotFoundError(document_id)
        return document

    # =========================================================================
    # Questions and summaries
    # =========================================================================

    async def ask(
        self,
        question: str,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        document_ids: Optional[list[str]] = None,
    ) -> Answer:
        """
        Answer a question, optionally restricted to some documents.

        Identical requests within the cache TTL share one computation.

        Raises:
            InputValidationError: If the question or parameters are invalid
            EmbeddingProviderError: If the question cannot be embedded
            RetrievalStoreError: If the similarity search fails
            CompletionProviderError: If the model call fails
        """
        request = parse_input(
            AskRequest,
            question=question,
            limit=self.default_limit if limit is None else limit,
            threshold=self.default_threshold if threshold is None else threshold,
            document_ids=document_ids,
        )
        add_span_attributes(
            question_length=len(request.question),
            limit=request.limit,
            documents=len(request.document_ids or []),
        )

        key = make_cache_key(
            "ask", request.question, request.limit, request.threshold, request.document_ids
        )
        return await self.cache.get_or_compute(
            key,
            lambda: self.orchestrator.answer(
                request.question, request.limit, request.threshold, request.document_ids
            ),
        )

    async def summarize(
        self,
        document_id: str,
        max_chunks: Optional[int] = None,
        owner_id: Optional[str] = None,
    ) -> Answer:
        """
        Summarize a document from its leading chunks.

        Raises:
            InputValidationError: If the parameters are invalid
            DocumentNotFoundError: If the document is missing or not owned by ``owner_id``
            CompletionProviderError: If the model call fails
        """
        request = self._summarize_request(document_id, max_chunks)
        await self._require_document(request.document_id, owner_id)

        key = make_cache_key("summarize", request.document_id, request.max_chunks)
        return await self.cache.get_or_compute(
            key, lambda: self.orchestrator.summarize(request.document_id, request.max_chunks)
        )

    async def analyze_document(
        self,
        document_id: str,
        max_chunks: Optional[int] = None,
        owner_id: Optional[str] = None,
    ) -> DocumentSummary:
        """
        Structured summary of a document: overview, key findings, keywords, reading time.

        Raises:
            InputValidationError: If the parameters are invalid
            DocumentNotFoundError: If the document is missing or not owned by ``owner_id``
            CompletionProviderError: If the model call fails or returns unusable JSON
        """
        request = self._summarize_request(document_id, max_chunks)
        await self._require_document(request.document_id, owner_id)

        key = make_cache_key("analyze", request.document_id, request.max_chunks)
        return await self.cache.get_or_compute(
            key, lambda: self.orchestrator.analyze(request.document_id, request.max_chunks)
        )

    def _summarize_request(self, document_id: str, max_chunks: Optional[int]) -> SummarizeRequest:
        return parse_input(
            SummarizeRequest,
            document_id=document_id,
            max_chunks=self.default_summary_chunks if max_chunks is None else max_chunks,
        )

    def cache_stats(self) -> dict[str, int]:
        return self.cache.stats()


def build_service(
    settings: Optional[Settings] = None,
    store: Optional[ChunkStore] = None,
    llm: Optional[LLMProtocol] = None,
) -> DocQAService:
    """
    Wire a service from configuration.

    Args:
        settings: Settings to read (default: process-wide settings)
        store: Chunk store to use (default: FAISS store persisted at ``settings.store_path``)
        llm: Completion client to use (default: ``create_llm(settings)``)
    """
    settings = settings or get_settings()

    if store is None:
        store = FAISSChunkStore.from_disk(
            settings.store_path, dimension=settings.embedding_dimension
        )

    embedder = OpenAIEmbedder(
        model=settings.embedding_model,
        api_key=settings.openai_api_key_value,
        base_url=settings.openai_base_url,
        batch_size=settings.embedding_batch_size,
        dimension=settings.embedding_dimension,
        timeout=settings.embedding_timeout,
        max_retries=settings.embedding_max_retries,
    )
    retriever = Retriever(
        embedder, store, min_chunks_per_document=settings.min_chunks_per_document
    )
    orchestrator = ChatOrchestrator(
        retriever,
        store,
        llm or create_llm(settings),
        chat_temperature=settings.chat_temperature,
        chat_max_tokens=settings.chat_max_tokens,
        summary_temperature=settings.summary_temperature,
        summary_max_tokens=settings.summary_max_tokens,
    )
    cache = AnswerCache(max_size=settings.cache_max_size, default_ttl=settings.cache_ttl_seconds)

    logger.info(
        f"Service ready (embeddings={settings.embedding_model}, chat={settings.chat_model}, "
        f"store={settings.store_path})"
    )
    return DocQAService(
        store=store,
        embedder=embedder,
        orchestrator=orchestrator,
        cache=cache,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        length_function=token_counter(settings.tokenizer_encoding),
        default_limit=settings.retrieval_top_k,
        default_threshold=settings.similarity_threshold,
        default_summary_chunks=settings.summary_max_chunks,
    )
