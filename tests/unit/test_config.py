"""
Unit tests for configuration module.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError


@pytest.mark.unit
class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_env(self, mock_settings):
        """Settings should load values from environment variables."""
        assert mock_settings.embedding_model == "text-embedding-3-small"
        assert mock_settings.chunk_size == 40
        assert mock_settings.chunk_overlap == 5
        assert mock_settings.enable_tracing is False

    def test_defaults(self):
        """Defaults follow the production pipeline's constants."""
        with patch.dict(os.environ, {}, clear=True):
            from docqa.config import Settings

            settings = Settings(_env_file=None)

        assert settings.openai_api_key is None
        assert settings.embedding_dimension == 1536
        assert settings.embedding_batch_size == 64
        assert settings.chunk_size == 1200
        assert settings.chunk_overlap == 150
        assert settings.chat_model == "gpt-4o-mini"
        assert settings.chat_temperature == 0.7
        assert settings.chat_max_tokens == 800
        assert settings.summary_temperature == 0.5
        assert settings.summary_max_tokens == 500
        assert settings.retrieval_top_k == 5
        assert settings.similarity_threshold == 0.5
        assert settings.summary_max_chunks == 30
        assert settings.cache_max_size == 100
        assert settings.cache_ttl_seconds == 3600

    def test_settings_chunk_overlap_validation(self):
        """Chunk overlap must be less than chunk size."""
        with patch.dict(
            os.environ,
            {"CHUNK_SIZE": "256", "CHUNK_OVERLAP": "300"},
            clear=True,
        ):
            from docqa.config import Settings

            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_threshold_must_be_in_unit_interval(self):
        with patch.dict(os.environ, {"SIMILARITY_THRESHOLD": "1.5"}, clear=True):
            from docqa.config import Settings

            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_api_key_is_secret(self, mock_settings):
        """API key should be stored as SecretStr."""
        assert "test-api-key" not in str(mock_settings.openai_api_key)
        assert mock_settings.openai_api_key_value == "test-api-key"

    def test_endpoint_urls_join_base_url(self):
        with patch.dict(
            os.environ, {"OPENAI_BASE_URL": "http://localhost:8080/v1/"}, clear=True
        ):
            from docqa.config import Settings

            settings = Settings(_env_file=None)

        assert settings.chat_completions_url == "http://localhost:8080/v1/chat/completions"
        assert settings.embeddings_url == "http://localhost:8080/v1/embeddings"

    def test_store_path_is_resolved(self, mock_settings):
        assert mock_settings.store_path.is_absolute()

    def test_get_settings_is_cached(self):
        """get_settings should return cached instance."""
        from docqa.config import get_settings

        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
