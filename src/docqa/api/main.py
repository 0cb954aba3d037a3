"""
FastAPI application for the docqa REST API.

Run with:
    uvicorn docqa.api.main:app --reload

Or use the CLI:
    docqa serve
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docqa import __version__
from docqa.api.models import (
    AnalysisResponse,
    AnswerResponse,
    AskRequest,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    SummaryRequest,
)
from docqa.config import get_settings
from docqa.exceptions import (
    CompletionProviderError,
    DocQAError,
    DocumentNotFoundError,
    EmbeddingProviderError,
    InputValidationError,
    RetrievalStoreError,
)
from docqa.logging_setup import configure_logging
from docqa.service import DocQAService, build_service
from docqa.tracing import setup_tracing

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[DocQAError], tuple[int, str]] = {
    InputValidationError: (status.HTTP_400_BAD_REQUEST, "invalid_input"),
    DocumentNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    EmbeddingProviderError: (status.HTTP_502_BAD_GATEWAY, "provider_error"),
    CompletionProviderError: (status.HTTP_502_BAD_GATEWAY, "provider_error"),
    RetrievalStoreError: (status.HTTP_503_SERVICE_UNAVAILABLE, "search_failed"),
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    502: {"model": ErrorResponse, "description": "Embedding or completion provider failed"},
    503: {"model": ErrorResponse, "description": "Search failed"},
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Configure logging and tracing
        - Build the service (loads the chunk store from disk) unless one was injected
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    setup_tracing(settings)

    if getattr(app.state, "service", None) is None:
        logger.info("Initializing docqa service...")
        app.state.service = build_service(settings)

    yield

    logger.info("Shutting down docqa...")


def create_app(service: Optional[DocQAService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Prebuilt service (tests inject one); built at startup otherwise

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="docqa",
        description="Question answering and summarization over uploaded documents",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DocQAError, handle_docqa_error)
    app.include_router(router)

    return app


async def handle_docqa_error(request: Request, exc: DocQAError) -> JSONResponse:
    """Map the error taxonomy onto HTTP status codes."""
    status_code, code = status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"
    for error_type, mapped in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code, code = mapped
            break

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")

    body = ErrorResponse(
        error=code,
        message=str(exc),
        details=getattr(exc, "errors", []),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def get_service(request: Request) -> DocQAService:
    return request.app.state.service


router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint for liveness/readiness probes."""
    service = get_service(request)
    documents = await service.list_documents()
    return HealthResponse(
        status="healthy",
        version=__version__,
        documents=len(documents),
        cache=service.cache_stats(),
    )


@router.post(
    "/documents",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Documents"],
)
async def ingest_document(body: IngestRequest, request: Request) -> IngestResponse:
    """Chunk, embed and store a document's extracted text."""
    result = await get_service(request).ingest(
        title=body.title,
        owner_id=body.owner_id,
        content=body.content,
        metadata=body.metadata,
        keep_content=body.keep_content,
    )
    return IngestResponse(**result.to_dict())


@router.get("/documents", response_model=list[DocumentResponse], tags=["Documents"])
async def list_documents(
    request: Request,
    owner_id: Optional[str] = Query(default=None, description="Only this user's documents"),
) -> list[DocumentResponse]:
    documents = await get_service(request).list_documents(owner_id)
    return [DocumentResponse.from_document(doc) for doc in documents]


@router.delete(
    "/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Document not found"}},
    tags=["Documents"],
)
async def delete_document(
    document_id: str,
    request: Request,
    owner_id: str = Query(..., description="Owner of the document"),
) -> None:
    """Delete a document and all of its chunks."""
    await get_service(request).delete_document(document_id, owner_id)


@router.post("/ask", response_model=AnswerResponse, responses=ERROR_RESPONSES, tags=["Query"])
async def ask(body: AskRequest, request: Request) -> AnswerResponse:
    """
    Answer a question from the stored documents.

    When nothing relevant is found the response is still successful, with
    ``chunks_used = 0`` and no sources.
    """
    answer = await get_service(request).ask(
        body.question,
        limit=body.limit,
        threshold=body.threshold,
        document_ids=body.document_ids,
    )
    return AnswerResponse.from_answer(answer)


@router.post(
    "/documents/{document_id}/summary",
    response_model=AnswerResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
    tags=["Query"],
)
async def summarize_document(
    document_id: str,
    request: Request,
    body: Optional[SummaryRequest] = None,
) -> AnswerResponse:
    """Summarize a document from its leading chunks in reading order."""
    body = body or SummaryRequest()
    answer = await get_service(request).summarize(
        document_id, max_chunks=body.max_chunks, owner_id=body.owner_id
    )
    return AnswerResponse.from_answer(answer)


@router.post(
    "/documents/{document_id}/analysis",
    response_model=AnalysisResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
    tags=["Query"],
)
async def analyze_document(
    document_id: str,
    request: Request,
    body: Optional[SummaryRequest] = None,
) -> AnalysisResponse:
    """Overview, key findings, keywords and reading time for a document."""
    body = body or SummaryRequest()
    summary = await get_service(request).analyze_document(
        document_id, max_chunks=body.max_chunks, owner_id=body.owner_id
    )
    return AnalysisResponse.from_summary(summary)


app = create_app()
