"""Question answering and summarization over retrieved chunks."""

from docqa.chat.orchestrator import ChatOrchestrator, build_sources
from docqa.chat.prompts import NO_CONTENT_SUMMARY, NO_CONTEXT_ANSWER

__all__ = ["ChatOrchestrator", "build_sources", "NO_CONTENT_SUMMARY", "NO_CONTEXT_ANSWER"]
