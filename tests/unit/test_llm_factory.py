"""Unit tests for LLM factory."""

from unittest.mock import MagicMock, patch

import pytest

from docqa.llm import ChatCompletionLLM, create_llm


@pytest.mark.unit
class TestCreateLLM:
    """Tests for create_llm factory function."""

    def test_create_llm_from_settings(self, mock_settings):
        """Test create_llm builds a chat completion client from settings."""
        llm = create_llm(mock_settings)

        assert isinstance(llm, ChatCompletionLLM)
        assert llm.endpoint_url == "https://api.openai.com/v1/chat/completions"
        assert llm.model == "gpt-4o-mini"
        assert llm.api_key == "test-api-key"
        assert llm.timeout == 120
        assert llm.max_retries == 3
        assert llm.retry_delay == 2.0

    def test_create_llm_custom_base_url(self):
        """Test create_llm points at an OpenAI-compatible server."""
        with patch.dict(
            "os.environ",
            {"OPENAI_BASE_URL": "http://localhost:8000/v1/", "LLM_MAX_RETRIES": "5"},
        ):
            from docqa.config import Settings

            llm = create_llm(Settings())

        assert llm.endpoint_url == "http://localhost:8000/v1/chat/completions"
        assert llm.max_retries == 5

    @patch("docqa.llm.chat_completion.ChatCompletionLLM")
    @patch("docqa.config.get_settings")
    def test_create_llm_defaults_to_global_settings(self, mock_get_settings, mock_client):
        """Test create_llm reads process-wide settings when none are given."""
        settings = MagicMock()
        settings.chat_completions_url = "http://llm.test/v1/chat/completions"
        settings.chat_model = "local-model"
        settings.openai_api_key_value = None
        settings.llm_timeout = 60
        settings.llm_max_retries = 2
        settings.llm_retry_delay = 1.0
        mock_get_settings.return_value = settings

        create_llm()

        mock_client.assert_called_once_with(
            endpoint_url="http://llm.test/v1/chat/completions",
            model="local-model",
            api_key=None,
            timeout=60,
            max_retries=2,
            retry_delay=1.0,
        )
