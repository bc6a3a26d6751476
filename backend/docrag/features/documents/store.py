"""
Documents feature: Supabase data access for files and document chunks.

Every call here is a network round trip on the synchronous Supabase client,
so each one runs in a worker thread and is awaited by the async services.
Failures surface as `StoreError`.
"""

import asyncio
import logging
from typing import Any, Callable, Protocol

from supabase import Client

from docrag.core.exceptions import StoreError
from docrag.features.documents.schemas import FileRecord

logger = logging.getLogger(__name__)

CHUNKS_TABLE = "document_chunks"
FILES_TABLE = "files"


async def run_query(operation: str, query: Callable[[], Any]) -> Any:
    """Run a blocking Supabase call off the event loop, wrapping errors."""
    try:
        return await asyncio.to_thread(query)
    except StoreError:
        raise
    except Exception as e:
        raise StoreError(operation, str(e)) from e


class ChunkStore(Protocol):
    async def replace_chunks(self, file_id: str, rows: list[dict]) -> None: ...
    async def delete_chunks(self, file_id: str) -> None: ...
    async def list_chunks(self, file_id: str, limit: int | None = None) -> list[dict]: ...
    async def count_chunks(self, file_id: str | None = None) -> int: ...
    async def match_chunks(
        self,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
        file_ids: list[str] | None = None,
    ) -> list[dict]: ...


class FileRepository(Protocol):
    async def get_file(self, file_id: str) -> FileRecord | None: ...
    async def mark_processed(self, file_id: str, processed: bool = True) -> None: ...
    async def list_unprocessed(self) -> list[FileRecord]: ...
    async def processed_counts(self) -> tuple[int, int]: ...
    async def download(self, file_path: str) -> bytes: ...


class SupabaseChunkStore:
    """`document_chunks` table + `search_documents` / `replace_document_chunks` RPCs."""

    def __init__(self, db: Client):
        self.db = db

    async def replace_chunks(self, file_id: str, rows: list[dict]) -> None:
        """Delete a file's chunks and insert `rows` in one transaction.

        Readers see either the previous complete set or the new one.
        """
        await run_query(
            "replace_chunks",
            lambda: self.db.rpc(
                "replace_document_chunks",
                {"target_file_id": file_id, "new_chunks": rows},
            ).execute(),
        )

    async def delete_chunks(self, file_id: str) -> None:
        await run_query(
            "delete_chunks",
            lambda: self.db.table(CHUNKS_TABLE).delete().eq("file_id", file_id).execute(),
        )

    async def list_chunks(self, file_id: str, limit: int | None = None) -> list[dict]:
        def query():
            q = (
                self.db.table(CHUNKS_TABLE)
                .select("*")
                .eq("file_id", file_id)
                .order("chunk_index")
            )
            if limit:
                q = q.limit(limit)
            return q.execute()

        result = await run_query("list_chunks", query)
        return result.data or []

    async def count_chunks(self, file_id: str | None = None) -> int:
        def query():
            q = self.db.table(CHUNKS_TABLE).select("id", count="exact", head=True)
            if file_id:
                q = q.eq("file_id", file_id)
            return q.execute()

        result = await run_query("count_chunks", query)
        return result.count or 0

    async def match_chunks(
        self,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
        file_ids: list[str] | None = None,
    ) -> list[dict]:
        """pgvector cosine similarity search, ordered by similarity desc."""
        result = await run_query(
            "match_chunks",
            lambda: self.db.rpc(
                "search_documents",
                {
                    "query_embedding": query_embedding,
                    "match_threshold": match_threshold,
                    "match_count": match_count,
                    "filter_file_ids": file_ids,
                },
            ).execute(),
        )
        return result.data or []


class SupabaseFileRepository:
    """Read access to `files` plus the processed-flag setter and storage download."""

    def __init__(self, db: Client, bucket: str):
        self.db = db
        self.bucket = bucket

    async def get_file(self, file_id: str) -> FileRecord | None:
        result = await run_query(
            "get_file",
            lambda: self.db.table(FILES_TABLE).select("*").eq("id", file_id).limit(1).execute(),
        )
        return FileRecord(**result.data[0]) if result.data else None

    async def mark_processed(self, file_id: str, processed: bool = True) -> None:
        await run_query(
            "mark_processed",
            lambda: self.db.table(FILES_TABLE)
            .update({"is_processed": processed})
            .eq("id", file_id)
            .execute(),
        )

    async def list_unprocessed(self) -> list[FileRecord]:
        result = await run_query(
            "list_unprocessed",
            lambda: self.db.table(FILES_TABLE)
            .select("*")
            .eq("is_processed", False)
            .order("created_at", desc=True)
            .execute(),
        )
        return [FileRecord(**row) for row in result.data or []]

    async def processed_counts(self) -> tuple[int, int]:
        """Returns (total_files, processed_files)."""
        result = await run_query(
            "processed_counts",
            lambda: self.db.table(FILES_TABLE).select("is_processed").execute(),
        )
        rows = result.data or []
        return len(rows), sum(1 for r in rows if r.get("is_processed"))

    async def download(self, file_path: str) -> bytes:
        return await run_query(
            "download",
            lambda: self.db.storage.from_(self.bucket).download(file_path),
        )
