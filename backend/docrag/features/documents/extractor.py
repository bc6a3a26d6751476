"""
Documents feature: turn raw file bytes into plain text by media type.

PDF, Word and Excel are not parsed here: they yield a placeholder naming
the file so indexing can still record them. Treat that text as low value.
"""

import json
import logging
import re

from docrag.core.exceptions import UnsupportedTypeError

logger = logging.getLogger(__name__)

TEXT_TYPES = {"text/plain", "text/csv", "text/markdown"}
WORD_TYPES = {
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
EXCEL_TYPES = {
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
PROCESSABLE_TYPES = (
    TEXT_TYPES | WORD_TYPES | EXCEL_TYPES | {"application/json", "text/html", "application/pdf"}
)

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def extract_text(data: bytes, mime_type: str, filename: str) -> str:
    """Extract plain text from a file buffer.

    Args:
        data: Raw file content.
        mime_type: Declared media type of the file.
        filename: Original file name (used in placeholders).

    Returns:
        The extracted text.

    Raises:
        UnsupportedTypeError: If the media type is not handled.
    """
    mime_type = (mime_type or "").split(";", 1)[0].strip().lower()

    if mime_type in TEXT_TYPES:
        return _decode(data)

    if mime_type == "application/json":
        raw = _decode(data)
        try:
            return json.dumps(json.loads(raw), indent=2, ensure_ascii=False)
        except ValueError:
            logger.debug(f"Invalid JSON in {filename}, falling back to raw text")
            return raw

    if mime_type == "text/html":
        text = _TAG_RE.sub(" ", _decode(data))
        return _WHITESPACE_RE.sub(" ", text).strip()

    if mime_type == "application/pdf":
        return f"PDF file: {filename}\n[PDF content extraction requires additional processing]"

    if mime_type in WORD_TYPES:
        return f"Word document: {filename}\n[Word document extraction requires additional processing]"

    if mime_type in EXCEL_TYPES:
        return f"Excel file: {filename}\n[Excel content extraction requires additional processing]"

    raise UnsupportedTypeError(mime_type or "unknown")


def can_process(mime_type: str | None) -> bool:
    """Whether a media type can go through the RAG pipeline."""
    return (mime_type or "") in PROCESSABLE_TYPES


def estimate_processing_time(file_size: int, mime_type: str) -> float:
    """Rough processing time estimate in seconds (minimum 5)."""
    base_time = 5 + (file_size / (1024 * 1024)) * 2

    if "pdf" in mime_type:
        base_time *= 2
    elif "document" in mime_type or "excel" in mime_type:
        base_time *= 1.5

    return max(base_time, 5.0)
