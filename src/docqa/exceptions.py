"""
Error taxonomy for the retrieval-and-answer pipeline.

An empty retrieval is not an error: it produces a successful answer with
no sources (see ``docqa.chat.prompts.NO_CONTEXT_ANSWER``).
"""


class DocQAError(Exception):
    """Base class for all docqa errors."""


class InputValidationError(DocQAError):
    """Malformed query or document, rejected before any external call."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class EmptyInputError(InputValidationError):
    """Document body is missing or blank."""


class DocumentNotFoundError(DocQAError):
    """Document does not exist or is not owned by the caller."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found or access denied: {document_id}")
        self.document_id = document_id


class EmbeddingProviderError(DocQAError):
    """Transport, quota or model failure while generating embeddings."""


class RetrievalStoreError(DocQAError):
    """Chunk store read, write or similarity-search failure."""


class CompletionProviderError(DocQAError):
    """The completion model could not generate an answer."""
