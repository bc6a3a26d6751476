"""
Search feature: Service layer for vector-based document retrieval.

Embeds the query, runs the pgvector similarity primitive and attaches file
context. Any embedding/store failure or timeout degrades to "no matches";
the caller only ever sees a ValidationError for an empty query.
"""

import asyncio
import logging
import time

from pydantic import ValidationError as PydanticValidationError

from docrag.config import get_settings
from docrag.core.exceptions import AppBaseError, StoreError, ValidationError
from docrag.features.analytics.service import AnalyticsTracker
from docrag.features.documents.embedding import EmbeddingClient
from docrag.features.documents.schemas import FileSummary, SearchResult
from docrag.features.documents.store import ChunkStore, FileRepository
from docrag.features.search.schemas import SearchOptions

logger = logging.getLogger(__name__)


class SearchEngine:
    """Read-only similarity search over document chunks."""

    def __init__(
        self,
        chunk_store: ChunkStore,
        file_repo: FileRepository,
        embeddings: EmbeddingClient,
        tracker: AnalyticsTracker | None = None,
        timeout: float | None = None,
    ):
        self.chunk_store = chunk_store
        self.file_repo = file_repo
        self.embeddings = embeddings
        self.tracker = tracker
        self.timeout = timeout or get_settings().SEARCH_TIMEOUT_SECONDS
        self._background: set[asyncio.Task] = set()

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
        user_id: str | None = None,
    ) -> list[SearchResult]:
        """Semantic search across all processed documents.

        Args:
            query: Natural language search query.
            options: Threshold / count / file allow-list / timeout.
            user_id: When set, the search is recorded in analytics
                without delaying the response.

        Returns:
            Matching chunks, most similar first.

        Raises:
            ValidationError: If the query is empty or whitespace.
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Search query is required")

        query = query.strip()
        options = options or SearchOptions()
        started = time.perf_counter()

        try:
            results = await asyncio.wait_for(
                self._search(query, options),
                timeout=options.timeout or self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Search timed out after {options.timeout or self.timeout}s: '{query}'")
            results = []
        except AppBaseError as e:
            logger.error(f"Error searching documents: {e.message} {e.detail or ''}".rstrip())
            results = []

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        if user_id and self.tracker is not None:
            self._track_in_background(user_id, query, len(results), options.match_threshold, elapsed_ms)
        return results

    async def _search(self, query: str, options: SearchOptions) -> list[SearchResult]:
        query_vector = await self.embeddings.embed(query)

        rows = await self.chunk_store.match_chunks(
            query_vector,
            options.match_threshold,
            options.match_count,
            options.file_ids or None,
        )

        try:
            results = [
                SearchResult(
                    chunk_id=r["id"],
                    file_id=r["file_id"],
                    content=r["content"],
                    similarity=r["similarity"],
                    metadata=r.get("metadata") or {},
                )
                for r in rows
            ]
        except (KeyError, TypeError, AttributeError, PydanticValidationError) as e:
            raise StoreError("match_chunks", f"Malformed search row: {e}") from e

        # Store order (similarity desc) is kept; filtering never re-sorts.
        if options.file_ids:
            allowed = set(options.file_ids)
            results = [r for r in results if r.file_id in allowed]

        files = await self._file_summaries([r.file_id for r in results])
        for result in results:
            result.file = files.get(result.file_id)
        return results

    async def _file_summaries(self, file_ids: list[str]) -> dict[str, FileSummary]:
        """One lookup per distinct file, run concurrently."""
        distinct = list(dict.fromkeys(file_ids))

        async def lookup(file_id: str) -> FileSummary | None:
            try:
                record = await self.file_repo.get_file(file_id)
            except StoreError as e:
                logger.warning(f"Could not load file {file_id} for search results: {e.detail}")
                return None
            if record is None:
                return None
            return FileSummary(
                id=record.id,
                filename=record.filename,
                mime_type=record.mime_type,
                created_at=record.created_at,
            )

        summaries = await asyncio.gather(*(lookup(fid) for fid in distinct))
        return {fid: s for fid, s in zip(distinct, summaries) if s is not None}

    # ── Fire-and-forget analytics ────────────────────────

    def _track_in_background(
        self,
        user_id: str,
        query: str,
        results_count: int,
        threshold: float,
        elapsed_ms: float,
    ) -> None:
        task = asyncio.create_task(
            self.tracker.track_query(user_id, query, results_count, threshold, elapsed_ms)
        )
        self._background.add(task)
        task.add_done_callback(self._on_tracked)

    def _on_tracked(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background search tracking failed: {task.exception()}")

    async def drain(self) -> None:
        """Wait for pending analytics writes (used on shutdown and in tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
