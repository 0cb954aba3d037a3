"""Unit tests for retrieval.embeddings module."""

import asyncio
import json

import httpx
import numpy as np
import pytest
from pytest_httpx import HTTPXMock

from docqa.exceptions import EmbeddingProviderError
from docqa.retrieval.embeddings import OpenAIEmbedder

BASE_URL = "https://embeddings.test/v1"
URL = f"{BASE_URL}/embeddings"
DIM = 8


def vector_for(text: str) -> list[float]:
    """Deterministic, text-dependent vector so ordering mistakes are visible."""
    seed = sum(ord(c) for c in text)
    return [float((seed * (i + 1)) % 97) + 1.0 for i in range(DIM)]


def embedding_callback(request: httpx.Request) -> httpx.Response:
    """Answer an embeddings request, listing items in reverse index order."""
    texts = json.loads(request.content)["input"]
    data = [
        {"object": "embedding", "index": i, "embedding": vector_for(t)}
        for i, t in enumerate(texts)
    ]
    return httpx.Response(200, json={"object": "list", "data": list(reversed(data))})


def expected_matrix(texts: list[str]) -> np.ndarray:
    matrix = np.array([vector_for(t) for t in texts], dtype=np.float32)
    return matrix / np.linalg.norm(matrix, axis=1, keepdims=True)


@pytest.fixture
def embedder():
    e = OpenAIEmbedder(
        model="text-embedding-3-small",
        api_key="test-key",
        base_url=BASE_URL,
        batch_size=64,
        dimension=DIM,
        max_retries=3,
    )
    e.initial_retry_delay = 0.0
    return e


@pytest.mark.unit
class TestOpenAIEmbedder:
    """Tests for OpenAIEmbedder class."""

    def test_init_with_custom_values(self):
        embedder = OpenAIEmbedder(
            model="custom-model",
            api_key="custom-key",
            base_url="http://localhost:9000/v1/",
            batch_size=16,
            dimension=32,
        )

        assert embedder.model == "custom-model"
        assert embedder.api_key == "custom-key"
        assert embedder.batch_size == 16
        assert embedder.dimension == 32
        assert embedder.url == "http://localhost:9000/v1/embeddings"

    def test_init_rejects_non_positive_batch_size(self):
        with pytest.raises(ValueError):
            OpenAIEmbedder(api_key="k", batch_size=-1, dimension=DIM)

    @pytest.mark.asyncio
    async def test_embed_single_text(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_callback(embedding_callback, url=URL)

        result = await embedder.embed("hello world")

        assert result.shape == (DIM,)
        assert result.dtype == np.float32
        np.testing.assert_allclose(result, expected_matrix(["hello world"])[0], rtol=1e-5)

    @pytest.mark.asyncio
    async def test_request_payload_and_auth(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_callback(embedding_callback, url=URL)

        await embedder.embed_batch(["a", "b"])

        request = httpx_mock.get_requests()[0]
        assert request.headers["Authorization"] == "Bearer test-key"
        assert json.loads(request.content) == {
            "model": "text-embedding-3-small",
            "input": ["a", "b"],
        }

    @pytest.mark.asyncio
    async def test_response_reordered_by_index(self, embedder, httpx_mock: HTTPXMock):
        """Rows follow the ``index`` field, not the order items arrive in."""
        httpx_mock.add_callback(embedding_callback, url=URL)
        texts = ["first", "second", "third"]

        result = await embedder.embed_batch(texts)

        np.testing.assert_allclose(result, expected_matrix(texts), rtol=1e-5)

    @pytest.mark.asyncio
    async def test_batching_preserves_length_and_order(self, embedder, httpx_mock: HTTPXMock):
        """150 texts in batches of 64 give the same rows as one unbatched call."""
        for _ in range(3):
            httpx_mock.add_callback(embedding_callback, url=URL)
        texts = [f"text number {i}" for i in range(150)]

        result = await embedder.embed_batch(texts)

        requests = httpx_mock.get_requests()
        assert sorted(len(json.loads(r.content)["input"]) for r in requests) == [22, 64, 64]
        assert result.shape == (150, DIM)
        np.testing.assert_allclose(result, expected_matrix(texts), rtol=1e-5)

    @pytest.mark.asyncio
    async def test_batches_sent_one_at_a_time(self, embedder, httpx_mock: HTTPXMock):
        embedder.batch_size = 1
        in_flight = 0
        peak = 0

        async def slow_callback(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return embedding_callback(request)

        httpx_mock.add_callback(slow_callback, url=URL, is_reusable=True)
        texts = [f"t{i}" for i in range(5)]

        result = await embedder.embed_batch(texts)

        assert peak == 1
        assert [json.loads(r.content)["input"] for r in httpx_mock.get_requests()] == [
            [t] for t in texts
        ]
        np.testing.assert_allclose(result, expected_matrix(texts), rtol=1e-5)

    @pytest.mark.asyncio
    async def test_failed_batch_stops_later_batches(self, embedder, httpx_mock: HTTPXMock):
        embedder.batch_size = 1
        httpx_mock.add_response(url=URL, status_code=500, json={"error": "boom"})

        with pytest.raises(EmbeddingProviderError, match="500"):
            await embedder.embed_batch([f"t{i}" for i in range(20)])

        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_embed_batch_empty_list(self, embedder):
        result = await embedder.embed_batch([])

        assert result.shape == (0, DIM)

    @pytest.mark.asyncio
    async def test_embeddings_are_normalized(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_callback(embedding_callback, url=URL)

        result = await embedder.embed_batch(["x", "yy", "zzz"])

        np.testing.assert_allclose(np.linalg.norm(result, axis=1), 1.0, rtol=1e-5)

    @pytest.mark.asyncio
    async def test_retry_on_429(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_response(url=URL, status_code=429, json={"error": "rate limited"})
        httpx_mock.add_callback(embedding_callback, url=URL)

        result = await embedder.embed("retry me")

        assert result.shape == (DIM,)
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self, embedder, httpx_mock: HTTPXMock):
        for _ in range(3):
            httpx_mock.add_response(url=URL, status_code=429)

        with pytest.raises(EmbeddingProviderError, match="429"):
            await embedder.embed("never succeeds")

        assert len(httpx_mock.get_requests()) == 3

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_response(url=URL, status_code=500, json={"error": "boom"})

        with pytest.raises(EmbeddingProviderError, match="500"):
            await embedder.embed("text")

        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_network_error(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_exception(httpx.ConnectError("Connection failed"), url=URL)

        with pytest.raises(EmbeddingProviderError, match="Connection failed"):
            await embedder.embed("text")

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            url=URL,
            json={"data": [{"index": 0, "embedding": [0.1, 0.2]}]},
        )

        with pytest.raises(EmbeddingProviderError, match="dimension"):
            await embedder.embed("text")

    @pytest.mark.asyncio
    async def test_missing_items_rejected(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            url=URL,
            json={"data": [{"index": 0, "embedding": vector_for("a")}]},
        )

        with pytest.raises(EmbeddingProviderError, match="Expected 2 embeddings"):
            await embedder.embed_batch(["a", "b"])

    @pytest.mark.asyncio
    async def test_malformed_body_rejected(self, embedder, httpx_mock: HTTPXMock):
        httpx_mock.add_response(url=URL, json={"unexpected": True})

        with pytest.raises(EmbeddingProviderError, match="Malformed"):
            await embedder.embed("text")
