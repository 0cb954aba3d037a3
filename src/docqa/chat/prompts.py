"""Prompt templates and context formatting for answers and summaries."""

from docqa.models import RetrievalResult

NO_CONTEXT_ANSWER = (
    "I couldn't find relevant information within the selected documents. "
    "Try adjusting your selection or rephrasing the query."
)

NO_CONTENT_SUMMARY = "No content found in this document."

DEFAULT_SYSTEM_PROMPT = """You are a helpful assistant that answers questions based on provided document excerpts.

Rules:
- Answer only from the excerpts in the context
- Always cite which document your information comes from
- If the context does not contain the answer, say "I don't know\""""

COMPARISON_SYSTEM_PROMPT = """You are a helpful assistant that compares and contrasts documents.

Rules:
- Clearly identify which information comes from which document
- Provide a structured comparison highlighting key differences and similarities
- Use only the excerpts in the context; say so when a document does not cover a point"""

ANSWER_PROMPT = """Based on the following document excerpts, answer this question:

Question: {question}

Context:
---
{context}
---

Answer:"""

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates concise, informative summaries of "
    "documents. Focus on the main points, key findings, and important details."
)

SUMMARY_PROMPT = """Please provide a comprehensive summary of the following document:

{text}"""

ANALYSIS_SYSTEM_PROMPT = """You analyze documents and respond with a single JSON object.

The object must have exactly these keys:
- "overview": a 2-4 sentence overview of the document
- "keyFindings": a list of the most important findings or points (strings)
- "keywords": a list of 5-10 keywords or key phrases (strings)"""

ANALYSIS_PROMPT = """Analyze the following document:

{text}"""


def format_context(results: list[RetrievalResult]) -> str:
    """
    Render retrieved chunks as numbered context blocks.

    Each block names the document, the chunk's position in it and its
    similarity to the question.
    """
    blocks = []
    for position, result in enumerate(results, start=1):
        header = (
            f"[{position}] Document: {result.document_title} "
            f"(part {result.chunk_index + 1}, similarity {result.similarity:.2f})"
        )
        blocks.append(f"{header}\n{result.content}")
    return "\n\n".join(blocks)
