"""
Pydantic models for API request and response schemas.

Request bodies only enforce types; value rules (lengths, ranges) are checked
by the service so that every rejection is reported the same way (HTTP 400).
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from docqa.models import Answer, Document, DocumentSummary


class IngestRequest(BaseModel):
    """Request schema for POST /documents."""

    title: str = Field(
        description="Document title, usually the file name",
        examples=["employee-handbook.md"],
    )
    owner_id: str = Field(
        description="Identifier of the uploading user",
    )
    content: str = Field(
        description="Extracted plain text of the document",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    keep_content: bool = Field(
        default=False,
        description="Retain the raw text on the document record",
    )


class IngestResponse(BaseModel):
    document_id: str
    title: str
    chunk_count: int = Field(description="Number of chunks stored")


class AskRequest(BaseModel):
    """Request schema for POST /ask."""

    question: str = Field(
        description="Natural language question",
        examples=["What is the difference between the 2023 and 2024 policies?"],
    )
    limit: Optional[int] = Field(
        default=None,
        description="Maximum chunks to use (default from settings)",
    )
    threshold: Optional[float] = Field(
        default=None,
        description="Minimum cosine similarity (default from settings)",
    )
    document_ids: Optional[list[str]] = Field(
        default=None,
        description="Restrict retrieval to these documents",
    )


class SummaryRequest(BaseModel):
    """Request schema for the summary and analysis endpoints."""

    owner_id: Optional[str] = Field(
        default=None,
        description="If set, the document must belong to this user",
    )
    max_chunks: Optional[int] = Field(
        default=None,
        description="Number of leading chunks to use (default from settings)",
    )


class SourceSchema(BaseModel):
    """Per-document attribution for an answer."""

    document_id: str
    document_title: str
    chunks_used: int
    top_similarity: float = Field(ge=0.0, le=1.0)


class AnswerResponse(BaseModel):
    """Response schema for /ask and summary endpoints."""

    answer: str
    sources: list[SourceSchema] = Field(default_factory=list)
    chunks_used: int
    success: bool = True

    @classmethod
    def from_answer(cls, answer: Answer) -> "AnswerResponse":
        return cls.model_validate(answer.to_dict())


class AnalysisResponse(BaseModel):
    """Response schema for the structured analysis endpoint."""

    document_id: str
    overview: str
    key_findings: list[str]
    keywords: list[str]
    word_count: int
    reading_time_minutes: int
    chunks_used: int

    @classmethod
    def from_summary(cls, summary: DocumentSummary) -> "AnalysisResponse":
        return cls.model_validate(summary.to_dict())


class DocumentResponse(BaseModel):
    id: str
    title: str
    owner_id: str
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls(
            id=document.id,
            title=document.title,
            owner_id=document.owner_id,
            created_at=document.created_at,
            metadata=document.metadata,
        )


class HealthResponse(BaseModel):
    """Response schema for the /health endpoint."""

    status: str = Field(
        description="Health status",
        examples=["healthy"],
    )
    version: str = Field(
        description="API version",
    )
    documents: int = Field(
        description="Number of stored documents",
    )
    cache: dict[str, int] = Field(
        default_factory=dict,
        description="Answer cache statistics",
    )


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    error: str = Field(
        description="Error code",
        examples=["invalid_input", "not_found", "provider_error", "search_failed"],
    )
    message: str = Field(
        description="Human-readable error message",
    )
    details: list[str] = Field(
        default_factory=list,
        description="Per-field validation messages",
    )
