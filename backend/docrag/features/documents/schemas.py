"""
Documents feature: Schemas for files, chunks, search results and requests.
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Records ──────────────────────────────────────────────

class FileRecord(BaseModel):
    """A row of the `files` table (owned by the file-management side)."""
    id: str
    filename: str
    mime_type: str | None = None
    file_size: int | None = None
    file_path: str | None = None
    is_processed: bool = False
    uploaded_by: str | None = None
    related_task_id: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")


class ChunkMetadata(BaseModel):
    start_index: int
    end_index: int
    length: int
    word_count: int

    model_config = ConfigDict(extra="allow")


class TextChunk(BaseModel):
    """Output of the chunker, before embedding."""
    content: str
    chunk_index: int
    metadata: ChunkMetadata


class DocumentChunk(BaseModel):
    """A row of the `document_chunks` table."""
    id: str | None = None
    file_id: str
    content: str
    chunk_index: int
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("embedding", mode="before")
    @classmethod
    def parse_vector(cls, value):
        # pgvector columns come back from PostgREST as "[0.1,0.2,...]"
        if isinstance(value, str):
            return json.loads(value)
        return value


class FileSummary(BaseModel):
    id: str
    filename: str
    mime_type: str | None = None
    created_at: datetime | None = None


class SearchResult(BaseModel):
    chunk_id: str
    file_id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = Field(default_factory=dict)
    file: FileSummary | None = None


class ProcessingStatistics(BaseModel):
    total_files: int = 0
    processed_files: int = 0
    unprocessed_files: int = 0
    total_chunks: int = 0


class ProcessingResult(BaseModel):
    """Outcome of processing one stored file."""
    success: bool
    chunks: list[TextChunk] = Field(default_factory=list)
    error: str | None = None


# ── Requests ─────────────────────────────────────────────

class ChunkingOptions(BaseModel):
    chunk_size: int = Field(1000, alias="chunkSize")
    chunk_overlap: int = Field(200, alias="chunkOverlap")
    max_chunks: int = Field(100, alias="maxChunks")

    model_config = ConfigDict(populate_by_name=True)


class FileProcessRequest(ChunkingOptions):
    reprocess: bool = False


class BatchProcessRequest(ChunkingOptions):
    file_ids: list[str] = Field(default_factory=list, alias="fileIds")
    process_unprocessed_only: bool = Field(True, alias="processUnprocessedOnly")
