"""
Token-bounded document chunking.

Splits extracted document text into overlapping chunks whose length is
measured in model tokens, preferring paragraph, then line, sentence and word
boundaries. Every chunk carries its 0-based ordinal so reading order can be
reconstructed from stored chunks.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

import tiktoken
from langchain_text_splitters import RecursiveCharacterTextSplitter

from docqa.exceptions import EmptyInputError

logger = logging.getLogger(__name__)

SEPARATORS = [
    "\n\n",  # Paragraph breaks
    "\n",  # Line breaks
    ". ",  # Sentence ends
    " ",  # Words
    "",  # Character-level fallback
]

LengthFunction = Callable[[str], int]


@dataclass
class TextChunk:
    """A chunk produced by the chunker, before embedding."""

    index: int
    """0-based ordinal within the document."""

    content: str
    """The text content of the chunk."""

    token_count: int
    """Length of the content in model tokens."""


@lru_cache(maxsize=4)
def get_encoding(encoding_name: str = "cl100k_base") -> tiktoken.Encoding:
    """Load a tiktoken encoding once per process."""
    return tiktoken.get_encoding(encoding_name)


def token_counter(encoding_name: str = "cl100k_base") -> LengthFunction:
    """
    Build a length function that counts model tokens.

    Special-token text inside documents is counted as ordinary text.
    """
    encoding = get_encoding(encoding_name)

    def count_tokens(text: str) -> int:
        return len(encoding.encode(text, disallowed_special=()))

    return count_tokens


def chunk_text(
    text: Optional[str],
    chunk_size: int,
    overlap: int,
    length_function: Optional[LengthFunction] = None,
) -> list[TextChunk]:
    """
    Split document text into overlapping, token-bounded chunks.

    Uses LangChain's RecursiveCharacterTextSplitter with a token length
    function. Any piece still longer than ``chunk_size`` is hard-split at the
    longest prefix that fits, so no content is ever dropped.

    Args:
        text: Extracted document text
        chunk_size: Maximum chunk length in tokens
        overlap: Tokens shared by adjacent chunks
        length_function: Token counter (defaults to tiktoken cl100k_base)

    Returns:
        Non-empty chunks with contiguous indices 0..n-1

    Raises:
        EmptyInputError: If text is None or blank
        ValueError: If chunk_size <= 0 or overlap is not in [0, chunk_size)
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must be non-negative, got {overlap}")
    if overlap >= chunk_size:
        raise ValueError(
            f"overlap ({overlap}) must be less than chunk_size ({chunk_size})"
        )

    if text is None or not text.strip():
        raise EmptyInputError("Document body is empty")

    count = length_function or token_counter()

    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=overlap,
        length_function=count,
        is_separator_regex=False,
        separators=SEPARATORS,
    )

    pieces: list[str] = []
    for piece in splitter.split_text(text):
        if count(piece) > chunk_size:
            pieces.extend(_hard_split(piece, chunk_size, count))
        else:
            pieces.append(piece)

    chunks: list[TextChunk] = []
    for piece in pieces:
        if not piece.strip():
            continue
        chunks.append(
            TextChunk(index=len(chunks), content=piece, token_count=count(piece))
        )

    if chunks:
        token_counts = [c.token_count for c in chunks]
        logger.debug(
            f"Chunked {len(text)} chars into {len(chunks)} chunks "
            f"(avg {sum(token_counts) / len(chunks):.0f} tokens, "
            f"range {min(token_counts)}-{max(token_counts)})"
        )

    return chunks


def _hard_split(piece: str, max_tokens: int, count: LengthFunction) -> list[str]:
    """
    Cut an oversized piece into consecutive parts that each fit max_tokens.

    Each cut takes the longest prefix within the bound (binary search over
    character offsets). A single character is always taken, even if the
    tokenizer reports it as too long.
    """
    parts: list[str] = []
    rest = piece

    while rest:
        if count(rest) <= max_tokens:
            parts.append(rest)
            break

        lo, hi = 1, len(rest)
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if count(rest[:mid]) <= max_tokens:
                lo = mid
            else:
                hi = mid - 1

        parts.append(rest[:lo])
        rest = rest[lo:]

    logger.warning(f"Hard-split an unbreakable run of {len(piece)} chars into {len(parts)} parts")
    return parts
