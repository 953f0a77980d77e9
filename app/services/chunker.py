# =============================================================================
# Token-Based Text Chunker — tiktoken
# =============================================================================
#
# Splits rendered record text into token windows before embedding.
#
# DESIGN DECISION: Token-based chunking (not character-based). tiktoken uses
# the same BPE tokenizer as the OpenAI embedding models, so chunk sizes are
# exact in the unit the embedding API limits.
#
# ALGORITHM:
# 1. Encode the text with cl100k_base
# 2. Slide a window of chunk_size tokens, stepping chunk_size - overlap
# 3. Decode each window; drop windows that decode to whitespace
# 4. Stop once a window reaches the end of the text
#
# A statement record renders to well under 800 tokens, so in practice each
# record yields exactly one chunk. The window logic matters for long
# free-text fields such as segment notes.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

import tiktoken

logger = logging.getLogger(__name__)


@dataclass
class ChunkResult:
    """A single chunk ready for embedding and storage."""

    content: str
    chunk_index: int  # 0-indexed position within the source text
    token_count: int  # Exact token count (from tiktoken)


# ---------------------------------------------------------------------------
# Tiktoken Encoder — Cached Singleton
# ---------------------------------------------------------------------------
# Loading the encoder reads a ~1.7MB BPE file; cache it per process.
# cl100k_base is the encoding of text-embedding-3-small.
# ---------------------------------------------------------------------------

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def count_tokens(text: str) -> int:
    return len(_get_encoder().encode(text))


def chunk_text(
    text: str,
    chunk_size: int = 800,
    chunk_overlap: int = 100,
) -> list[ChunkResult]:
    """
    Split text into overlapping token windows.

    Args:
        text: The text to split.
        chunk_size: Maximum tokens per chunk.
        chunk_overlap: Tokens shared by consecutive chunks. Must be smaller
            than chunk_size.

    Returns:
        Chunks in text order; empty for blank text.

    Raises:
        ValueError: If chunk_size <= 0 or the overlap is not smaller than it.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not 0 <= chunk_overlap < chunk_size:
        raise ValueError(
            f"chunk_overlap must be in [0, {chunk_size}), got {chunk_overlap}"
        )

    encoder = _get_encoder()
    tokens = encoder.encode(text)
    total_tokens = len(tokens)
    if total_tokens == 0:
        return []

    chunks: list[ChunkResult] = []
    step = chunk_size - chunk_overlap

    for start in range(0, total_tokens, step):
        end = min(start + chunk_size, total_tokens)
        window = tokens[start:end]

        content = encoder.decode(window).strip()
        if content:
            chunks.append(ChunkResult(
                content=content,
                chunk_index=len(chunks),
                token_count=len(window),
            ))

        if end >= total_tokens:
            break

    logger.debug(
        "Chunked %d tokens into %d chunks (size=%d, overlap=%d)",
        total_tokens, len(chunks), chunk_size, chunk_overlap,
    )
    return chunks
