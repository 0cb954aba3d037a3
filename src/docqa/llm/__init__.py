"""Completion clients for docqa."""

from docqa.llm.chat_completion import ChatCompletionLLM, parse_json_reply
from docqa.llm.factory import LLMProtocol, create_llm

__all__ = ["ChatCompletionLLM", "parse_json_reply", "LLMProtocol", "create_llm"]
