"""
Documents feature: boundary-aware text chunking.

Splits text into overlapping windows of roughly `chunk_size` characters,
preferring to end a chunk on a sentence terminator, then on a space, and
only cutting mid-word when neither is close enough to the target size.
"""

from docrag.core.exceptions import ValidationError
from docrag.features.documents.schemas import ChunkMetadata, TextChunk

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
MAX_CHUNKS_PER_FILE = 100

SENTENCE_TERMINATORS = (".", "?", "!")
# A sentence break must keep at least 70% of the target size,
# a word break at least 50%.
SENTENCE_BREAK_RATIO = 0.7
WORD_BREAK_RATIO = 0.5


def _find_chunk_end(text: str, start: int, chunk_size: int) -> int:
    end = min(start + chunk_size, len(text))
    if end >= len(text):
        return end

    # The boundary search includes `end` itself.
    sentence_end = max(text.rfind(t, start, end + 1) for t in SENTENCE_TERMINATORS)
    if sentence_end > start + chunk_size * SENTENCE_BREAK_RATIO:
        return sentence_end + 1

    word_end = text.rfind(" ", start, end + 1)
    if word_end > start + chunk_size * WORD_BREAK_RATIO:
        return word_end

    return end


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    max_chunks: int = MAX_CHUNKS_PER_FILE,
) -> list[TextChunk]:
    """Split text into overlapping chunks with positional metadata.

    Args:
        text: The extracted document text.
        chunk_size: Target chunk length in characters.
        chunk_overlap: Characters shared between consecutive chunks.
        max_chunks: Hard cap; remaining text is dropped once reached.

    Returns:
        Chunks with dense `chunk_index` values 0..N-1. Offsets in the
        metadata refer to the untrimmed slice of `text`.
    """
    if chunk_size <= 0 or chunk_overlap < 0 or max_chunks <= 0:
        raise ValidationError(
            "Invalid chunking options",
            detail=f"chunk_size={chunk_size}, chunk_overlap={chunk_overlap}, max_chunks={max_chunks}",
        )

    chunks: list[TextChunk] = []
    if not text:
        return chunks

    start = 0
    while start < len(text) and len(chunks) < max_chunks:
        end = _find_chunk_end(text, start, chunk_size)

        content = text[start:end].strip()
        if content:
            chunks.append(
                TextChunk(
                    content=content,
                    chunk_index=len(chunks),
                    metadata=ChunkMetadata(
                        start_index=start,
                        end_index=end,
                        length=len(content),
                        word_count=len(content.split()),
                    ),
                )
            )

        # The tail is covered; re-chunking it would only emit suffixes.
        if end >= len(text):
            break

        # Always move forward, even when overlap >= chunk size.
        start = max(start + 1, end - chunk_overlap)

    return chunks
