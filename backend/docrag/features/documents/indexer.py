"""
Documents feature: indexing pipeline for one file.

extract -> chunk -> batch embed -> atomic chunk write -> mark processed.
At most one pipeline runs per file_id; later requests for the same file
wait for the running one instead of interleaving with it.
"""

import logging

from docrag.config import get_settings
from docrag.core.exceptions import AppBaseError, NotFoundError, StoreError, ValidationError
from docrag.core.locks import KeyedLock
from docrag.features.documents.chunker import chunk_text
from docrag.features.documents.embedding import EmbeddingClient
from docrag.features.documents.extractor import extract_text
from docrag.features.documents.schemas import (
    ChunkingOptions,
    DocumentChunk,
    FileRecord,
    ProcessingResult,
    ProcessingStatistics,
    TextChunk,
)
from docrag.features.documents.store import ChunkStore, FileRepository

logger = logging.getLogger(__name__)


class DocumentIndexer:
    """Owns the chunk set of every file: create, replace, delete."""

    def __init__(
        self,
        chunk_store: ChunkStore,
        file_repo: FileRepository,
        embeddings: EmbeddingClient,
        default_options: ChunkingOptions | None = None,
    ):
        settings = get_settings()
        self.chunk_store = chunk_store
        self.file_repo = file_repo
        self.embeddings = embeddings
        self.default_options = default_options or ChunkingOptions(
            chunk_size=settings.CHUNK_SIZE,
            chunk_overlap=settings.CHUNK_OVERLAP,
            max_chunks=settings.MAX_CHUNKS_PER_FILE,
        )
        self._locks = KeyedLock()

    def is_indexing(self, file_id: str) -> bool:
        return self._locks.locked(file_id)

    async def _index(
        self,
        file: FileRecord,
        content: str | bytes,
        options: ChunkingOptions,
    ) -> list[TextChunk]:
        # 1. Text: raw bytes go through the extractor, text is used as-is
        if isinstance(content, bytes):
            text = extract_text(content, file.mime_type or "text/plain", file.filename)
        else:
            text = content

        if not text or not text.strip():
            raise ValidationError("No content could be extracted from file")

        # 2. Chunking
        chunks = chunk_text(
            text,
            chunk_size=options.chunk_size,
            chunk_overlap=options.chunk_overlap,
            max_chunks=options.max_chunks,
        )
        if not chunks:
            raise ValidationError("No chunks created from file")
        logger.info(f"Created {len(chunks)} chunks for file: {file.filename}")

        # 3. One batched embedding call for the whole file
        vectors = await self.embeddings.embed_batch([c.content for c in chunks])

        # 4. Single atomic write of the full set
        rows = [
            {
                "file_id": file.id,
                "content": chunk.content,
                "chunk_index": chunk.chunk_index,
                "embedding": vector,
                "metadata": chunk.metadata.model_dump(),
            }
            for chunk, vector in zip(chunks, vectors)
        ]
        previous = await self.chunk_store.list_chunks(file.id)
        await self.chunk_store.replace_chunks(file.id, rows)

        # 5. Only now is the file considered processed
        try:
            await self.file_repo.mark_processed(file.id, True)
        except StoreError:
            await self._restore(file.id, previous)
            raise
        return chunks

    async def _restore(self, file_id: str, previous: list[dict]) -> None:
        """Put back the chunk set that was live before a failed run."""
        try:
            if previous:
                rows = [
                    {key: row.get(key) for key in ("file_id", "content", "chunk_index", "embedding", "metadata")}
                    for row in previous
                ]
                await self.chunk_store.replace_chunks(file_id, rows)
            else:
                await self.chunk_store.delete_chunks(file_id)
        except StoreError as e:
            logger.error(f"❌ Could not roll back chunks for {file_id}: {e.detail}")
        else:
            logger.warning(f"Rolled back chunks for {file_id} after processed flag update failed")

    async def _run(
        self,
        file: FileRecord,
        content: str | bytes,
        options: ChunkingOptions | None,
        action: str,
    ) -> ProcessingResult:
        async with self._locks.hold(file.id):
            logger.info(f"🚀 {action} document for RAG: {file.filename} ({file.id})")
            try:
                chunks = await self._index(file, content, options or self.default_options)
            except AppBaseError as e:
                logger.error(f"❌ {action} failed for {file.id}: {e.message} {e.detail or ''}".rstrip())
                return ProcessingResult(success=False, error=e.message)
        logger.info(f"🎉 Successfully processed document: {file.filename}")
        return ProcessingResult(success=True, chunks=chunks)

    async def process(
        self,
        file: FileRecord,
        content: str | bytes,
        options: ChunkingOptions | None = None,
    ) -> bool:
        """Index a file. `content` is extracted text, or raw bytes to extract.

        Returns:
            True once the chunk set is committed and the file is marked
            processed; False on any failure (nothing partial is left behind).
        """
        result = await self._run(file, content, options, "Processing")
        return result.success

    async def reprocess(
        self,
        file: FileRecord,
        content: str | bytes,
        options: ChunkingOptions | None = None,
    ) -> bool:
        """Regenerate chunks and embeddings, replacing the current set as one unit.

        On failure the previous set (if any) stays in place untouched.
        """
        result = await self._run(file, content, options, "Reprocessing")
        return result.success

    async def delete_chunks(self, file_id: str) -> bool:
        """Remove every chunk of a file and clear its processed flag."""
        async with self._locks.hold(file_id):
            try:
                await self.chunk_store.delete_chunks(file_id)
                await self.file_repo.mark_processed(file_id, False)
            except StoreError as e:
                logger.error(f"Error deleting document chunks for {file_id}: {e.detail}")
                return False
        return True

    async def chunks_for(self, file_id: str, limit: int | None = None) -> list[DocumentChunk]:
        """Chunks of a file ordered by chunk_index ([] on store error)."""
        try:
            rows = await self.chunk_store.list_chunks(file_id, limit)
        except StoreError as e:
            logger.error(f"Error fetching document chunks for {file_id}: {e.detail}")
            return []
        return [DocumentChunk(**row) for row in rows]

    async def process_file(
        self,
        file_id: str,
        options: ChunkingOptions | None = None,
        reprocess: bool = False,
    ) -> ProcessingResult:
        """Download a stored file, extract its text and index it."""
        try:
            file = await self.file_repo.get_file(file_id)
            if file is None:
                raise NotFoundError("File not found")
            if not file.file_path:
                raise ValidationError("File has no storage path")
            data = await self.file_repo.download(file.file_path)
        except AppBaseError as e:
            logger.error(f"Cannot load file {file_id}: {e.message} {e.detail or ''}".rstrip())
            return ProcessingResult(success=False, error=e.message)

        return await self._run(file, data, options, "Reprocessing" if reprocess else "Processing")

    async def statistics(self) -> ProcessingStatistics:
        """File/chunk counts for the processing dashboard (zeros on error)."""
        try:
            total, processed = await self.file_repo.processed_counts()
            chunks = await self.chunk_store.count_chunks()
        except StoreError as e:
            logger.error(f"Error fetching processing statistics: {e.detail}")
            return ProcessingStatistics()
        return ProcessingStatistics(
            total_files=total,
            processed_files=processed,
            unprocessed_files=total - processed,
            total_chunks=chunks,
        )
