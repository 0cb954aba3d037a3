"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Use a .env file for local development.

Environment Variables:
    OPENAI_API_KEY: API key for the embedding and completion provider
    OPENAI_BASE_URL: Base URL of an OpenAI-compatible API
    EMBEDDING_MODEL: Embedding model name
    CHAT_MODEL: Completion model name
    CHUNK_SIZE: Maximum chunk length in tokens
    CHUNK_OVERLAP: Overlap between chunks in tokens
    STORE_PATH: Base path of the persisted chunk store
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Provider
    # ==========================================================================
    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key for the embedding and completion provider",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API",
    )

    # ==========================================================================
    # Embeddings
    # ==========================================================================
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model for chunks and queries",
    )
    embedding_dimension: int = Field(
        default=1536,
        ge=1,
        description="Dimension of embedding vectors (must match model)",
    )
    embedding_batch_size: int = Field(
        default=64,
        ge=1,
        le=2048,
        description="Maximum number of texts per embedding request",
    )
    embedding_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Embedding request timeout in seconds",
    )
    embedding_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per embedding batch on rate limiting",
    )

    # ==========================================================================
    # Completion model
    # ==========================================================================
    chat_model: str = Field(
        default="gpt-4o-mini",
        description="Completion model for answers and summaries",
    )
    chat_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for question answering",
    )
    chat_max_tokens: int = Field(
        default=800,
        ge=1,
        le=16384,
        description="Maximum tokens for an answer",
    )
    summary_temperature: float = Field(
        default=0.5,
        ge=0.0,
        le=2.0,
        description="Temperature for summarization",
    )
    summary_max_tokens: int = Field(
        default=500,
        ge=1,
        le=16384,
        description="Maximum tokens for a summary",
    )
    llm_timeout: int = Field(
        default=120,
        ge=1,
        description="Completion request timeout in seconds",
    )
    llm_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per completion request on transient errors",
    )
    llm_retry_delay: float = Field(
        default=2.0,
        ge=0.0,
        description="Initial delay between completion retries (exponential backoff)",
    )

    # ==========================================================================
    # Chunking Configuration
    # ==========================================================================
    chunk_size: int = Field(
        default=1200,
        ge=16,
        le=8192,
        description="Maximum size in tokens for document chunks",
    )
    chunk_overlap: int = Field(
        default=150,
        ge=0,
        le=1024,
        description="Token overlap between consecutive chunks",
    )
    tokenizer_encoding: str = Field(
        default="cl100k_base",
        description="tiktoken encoding used to measure chunk length",
    )

    # ==========================================================================
    # Retrieval Configuration
    # ==========================================================================
    retrieval_top_k: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Default number of chunks to retrieve",
    )
    similarity_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Default minimum cosine similarity for retrieved chunks",
    )
    summary_max_chunks: int = Field(
        default=30,
        ge=1,
        description="Default number of leading chunks used for a summary",
    )
    min_chunks_per_document: int = Field(
        default=2,
        ge=1,
        description="Minimum chunks pulled from each document in comparison mode",
    )

    # ==========================================================================
    # Answer Cache
    # ==========================================================================
    cache_max_size: int = Field(
        default=100,
        ge=1,
        description="Maximum number of cached answers",
    )
    cache_ttl_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Time-to-live of cached answers in seconds",
    )

    # ==========================================================================
    # Storage
    # ==========================================================================
    store_path: Path = Field(
        default=Path("data/store/chunks"),
        description="Base path for the chunk store (.index and .json files)",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================
    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind API server",
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for API server",
    )

    # ==========================================================================
    # Observability Configuration
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    phoenix_endpoint: str = Field(
        default="http://localhost:6006",
        description="Arize Phoenix collector endpoint",
    )
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing to Phoenix",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("chunk_overlap")
    @classmethod
    def validate_chunk_overlap(cls, v: int, info) -> int:
        """Ensure overlap is less than chunk size."""
        chunk_size = info.data.get("chunk_size", 1200)
        if v >= chunk_size:
            raise ValueError(f"chunk_overlap ({v}) must be less than chunk_size ({chunk_size})")
        return v

    @field_validator("store_path")
    @classmethod
    def resolve_path(cls, v: Path) -> Path:
        """Resolve paths to absolute paths."""
        return v.resolve()

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def openai_api_key_value(self) -> Optional[str]:
        """Get the actual API key value (use sparingly)."""
        if self.openai_api_key:
            return self.openai_api_key.get_secret_value()
        return None

    @property
    def chat_completions_url(self) -> str:
        return f"{self.openai_base_url.rstrip('/')}/chat/completions"

    @property
    def embeddings_url(self) -> str:
        return f"{self.openai_base_url.rstrip('/')}/embeddings"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    Call `get_settings.cache_clear()` to reload settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Convenience alias
settings = get_settings()
