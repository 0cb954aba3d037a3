"""
Domain records and input schemas.

Records that flow through the pipeline are dataclasses; everything a caller
hands to the core is validated by a pydantic model first, so malformed input
is rejected before any provider is called.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from docqa.exceptions import InputValidationError

QUESTION_MIN_LENGTH = 3
QUESTION_MAX_LENGTH = 1000
TITLE_MAX_LENGTH = 200
MAX_TOP_K = 50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Stored records
# =============================================================================

@dataclass
class Document:
    """An ingested document owned by a single user."""

    id: str
    """Unique document identifier."""

    title: str
    """Display title (usually the uploaded file name)."""

    owner_id: str
    """Identifier of the owning user; only the owner may delete."""

    created_at: datetime = field(default_factory=utcnow)
    """Creation timestamp (UTC)."""

    content: Optional[str] = None
    """Raw text, or None when only the chunks are retained."""

    metadata: dict[str, Any] = field(default_factory=dict)

    def belongs_to(self, owner_id: str) -> bool:
        return self.owner_id == owner_id


@dataclass
class Chunk:
    """A persisted chunk: one bounded, embedded segment of a document."""

    id: str
    document_id: str
    chunk_index: int
    """0-based ordinal, contiguous within the document, in reading order."""

    content: str
    embedding: Optional[NDArray[np.float32]] = None
    metadata: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Transient results
# =============================================================================

@dataclass
class RetrievalResult:
    """A chunk returned for a query, joined with its document title."""

    chunk_id: str
    document_id: str
    document_title: str
    content: str
    chunk_index: int
    similarity: float
    """Cosine similarity to the query, in [0, 1]."""


@dataclass
class Source:
    """Per-document attribution for an answer."""

    document_id: str
    document_title: str
    chunks_used: int
    top_similarity: float


@dataclass
class Answer:
    """Answer returned by ask/summarize."""

    answer: str
    sources: list[Source] = field(default_factory=list)
    chunks_used: int = 0
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class IngestResult:
    """Outcome of a successful ingestion."""

    document_id: str
    title: str
    chunk_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DocumentSummary:
    """Structured analysis of a single document."""

    document_id: str
    overview: str
    key_findings: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    word_count: int = 0
    reading_time_minutes: int = 0
    chunks_used: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Input schemas
# =============================================================================

class DocumentInput(BaseModel):
    """A document handed to ingestion (text already extracted)."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    owner_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class AskRequest(BaseModel):
    """A question scoped to an optional set of documents."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    question: str = Field(
        ...,
        min_length=QUESTION_MIN_LENGTH,
        max_length=QUESTION_MAX_LENGTH,
    )
    limit: int = Field(default=5, ge=1, le=MAX_TOP_K)
    threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    document_ids: Optional[list[str]] = None

    @field_validator("document_ids")
    @classmethod
    def dedupe_document_ids(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        """Drop blanks and duplicates while keeping the caller's order."""
        if v is None:
            return None
        seen: dict[str, None] = {}
        for doc_id in v:
            doc_id = doc_id.strip()
            if doc_id:
                seen.setdefault(doc_id, None)
        return list(seen) or None


class SummarizeRequest(BaseModel):
    """A request to summarize one document from its leading chunks."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    document_id: str = Field(..., min_length=1)
    max_chunks: int = Field(default=30, ge=1, le=500)


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_input(model: type[ModelT], **data: Any) -> ModelT:
    """
    Validate caller input against a schema.

    Raises:
        InputValidationError: With one message per failing field
    """
    try:
        return model(**data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InputValidationError(
            f"Invalid {model.__name__}: " + "; ".join(errors), errors=errors
        ) from e
