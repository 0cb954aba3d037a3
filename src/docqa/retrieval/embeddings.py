"""
Embedding generation via an OpenAI-compatible embeddings API.

One stateless client with a single async method set: ``embed`` for a query,
``embed_batch`` for chunk texts. Batches are capped at ``batch_size`` texts
per request and re-assembled in input order.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
import numpy as np
from numpy.typing import NDArray

from docqa.config import settings
from docqa.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """
    Generate embeddings using an OpenAI-compatible ``/embeddings`` endpoint.

    Rate-limited requests (HTTP 429) are retried with exponential backoff;
    every other failure surfaces as EmbeddingProviderError and fails the
    whole call.

    Example:
        >>> embedder = OpenAIEmbedder()
        >>> vectors = await embedder.embed_batch(["What changed in v2?"])
        >>> vectors.shape
        (1, 1536)
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        batch_size: Optional[int] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        """
        Initialize the embedder.

        Args:
            model: Embedding model name (default from settings)
            api_key: Provider API key (default from settings)
            base_url: API base URL (default from settings)
            batch_size: Number of texts per API call (default 64)
            dimension: Expected vector dimension (default from settings)
            timeout: Request timeout in seconds
            max_retries: Attempts per batch when rate limited
        """
        self.model = model or settings.embedding_model
        self.api_key = api_key or settings.openai_api_key_value
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.batch_size = batch_size or settings.embedding_batch_size
        self.dimension = dimension or settings.embedding_dimension
        self.timeout = timeout or settings.embedding_timeout
        self.max_retries = max_retries or settings.embedding_max_retries
        self.initial_retry_delay = 1.0  # seconds

        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

    @property
    def url(self) -> str:
        return f"{self.base_url}/embeddings"

    async def embed(self, text: str) -> NDArray[np.float32]:
        """
        Generate the embedding for a single text.

        Returns:
            Array of shape (dimension,)
        """
        result = await self.embed_batch([text])
        return result[0]

    async def embed_batch(self, texts: list[str]) -> NDArray[np.float32]:
        """
        Generate embeddings for a list of texts.

        Batches are sent one after another and concatenated in input order,
        so row ``i`` of the result always belongs to ``texts[i]``. The first
        failing batch stops the call before any later batch is sent.

        Args:
            texts: Texts to embed

        Returns:
            Array of shape (len(texts), dimension)

        Raises:
            EmbeddingProviderError: If any batch fails
        """
        if not texts:
            return np.empty((0, self.dimension), dtype=np.float32)

        batch_results: list[NDArray[np.float32]] = []

        # Process texts in batches
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for i in range(0, len(texts), self.batch_size):
                batch = texts[i : i + self.batch_size]
                batch_results.append(await self._embed_one_batch(client, batch))

        result = np.vstack(batch_results)
        if result.shape[0] != len(texts):
            raise EmbeddingProviderError(
                f"Expected {len(texts)} embeddings, got {result.shape[0]}"
            )

        logger.debug(f"Embedded {len(texts)} texts in {len(batch_results)} batches")
        return result

    async def _embed_one_batch(
        self, client: httpx.AsyncClient, texts: list[str]
    ) -> NDArray[np.float32]:
        """
        Embed a single batch of texts with retry on rate limits.

        Args:
            client: Shared HTTP client for this call
            texts: Texts to embed (at most batch_size)

        Returns:
            Normalized embeddings of shape (len(texts), dimension)
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"model": self.model, "input": texts}

        retry_delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            try:
                response = await client.post(self.url, json=payload, headers=headers)

                # Handle rate limiting with exponential backoff
                if response.status_code == 429 and attempt < self.max_retries - 1:
                    logger.warning(
                        f"Embedding provider rate limited, retrying in {retry_delay:.1f}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2
                    continue

                response.raise_for_status()
                embeddings = self._parse_response(response.json(), expected=len(texts))
                return self._normalize_embeddings(embeddings)

            except httpx.HTTPStatusError as e:
                logger.error(f"Embedding request failed: HTTP {e.response.status_code}")
                raise EmbeddingProviderError(
                    f"Embedding provider returned HTTP {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                logger.error(f"Embedding request failed: {e!s}")
                raise EmbeddingProviderError(f"Embedding request failed: {e!s}") from e
            except ValueError as e:
                logger.error("Embedding provider returned a non-JSON body")
                raise EmbeddingProviderError("Embedding provider returned a non-JSON body") from e

        # The last attempt always returns or raises
        raise EmbeddingProviderError("Unexpected error in _embed_one_batch")

    def _parse_response(self, body: Any, expected: int) -> NDArray[np.float32]:
        """
        Extract vectors from an embeddings response, ordered by ``index``.

        Raises:
            EmbeddingProviderError: If the body is malformed or mismatched
        """
        try:
            items = sorted(body["data"], key=lambda item: item["index"])
            embeddings = np.array([item["embedding"] for item in items], dtype=np.float32)
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingProviderError(f"Malformed embedding response: {e!s}") from e

        if embeddings.ndim != 2 or embeddings.shape[0] != expected:
            raise EmbeddingProviderError(
                f"Expected {expected} embeddings, got {embeddings.shape[0] if embeddings.ndim else 0}"
            )
        if embeddings.shape[1] != self.dimension:
            raise EmbeddingProviderError(
                f"Expected dimension {self.dimension}, got {embeddings.shape[1]}"
            )
        return embeddings

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
