"""
LLM factory for creating completion clients from configuration.

The orchestrator depends only on ``LLMProtocol``, so tests and alternative
backends can substitute any object with the same methods.
"""

from typing import Any, Optional, Protocol

from docqa.config import Settings


class LLMProtocol(Protocol):
    """Protocol that all completion clients must implement."""

    def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = ...,
        max_tokens: int = ...,
    ) -> str:
        """Call the model and return the response text."""
        ...

    def invoke_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = ...,
        max_tokens: int = ...,
    ) -> dict[str, Any]:
        """Call the model in JSON mode and return the parsed object."""
        ...


def create_llm(settings: Optional[Settings] = None) -> LLMProtocol:
    """
    Create a completion client based on configuration settings.

    Args:
        settings: Settings to read; defaults to the process-wide settings

    Returns:
        Client that implements the LLMProtocol
    """
    from docqa.llm.chat_completion import ChatCompletionLLM

    if settings is None:
        from docqa.config import get_settings

        settings = get_settings()

    return ChatCompletionLLM(
        endpoint_url=settings.chat_completions_url,
        model=settings.chat_model,
        api_key=settings.openai_api_key_value,
        timeout=settings.llm_timeout,
        max_retries=settings.llm_max_retries,
        retry_delay=settings.llm_retry_delay,
    )
