"""
Analytics feature: Service layer for search tracking and saved queries.

Store failures never reach the caller: writes report None/False and reads
fall back to empty/zeroed values, with the error logged. Only ownership
checks on saved-query mutation raise (NotFoundError / ForbiddenError).
"""

import logging
from datetime import datetime, timedelta, timezone

from supabase import Client

from docrag.core.exceptions import ForbiddenError, NotFoundError, StoreError
from docrag.features.analytics.schemas import (
    AnalyticsSummary,
    PerformanceMetrics,
    PopularQuery,
    SavedQuery,
    SavedQueryFilters,
    SearchAnalyticsEntry,
)
from docrag.features.documents.store import run_query

logger = logging.getLogger(__name__)

ANALYTICS_TABLE = "search_analytics"
SAVED_QUERIES_TABLE = "saved_queries"


def _rpc_object(data) -> dict | None:
    """RPCs returning a single json/composite may come back wrapped in a list."""
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


class AnalyticsTracker:
    """Owns `search_analytics` and `saved_queries` rows."""

    def __init__(self, db: Client):
        self.db = db

    # ── Search tracking ──────────────────────────────────

    async def track_query(
        self,
        user_id: str,
        query: str,
        results_count: int,
        similarity_threshold: float,
        execution_time_ms: float,
    ) -> str | None:
        """Record one search. Returns the analytics id, or None on failure."""
        insert_data = {
            "user_id": user_id,
            "query": query.strip(),
            "results_count": results_count,
            "similarity_threshold": similarity_threshold,
            "execution_time_ms": execution_time_ms,
            "clicked_result_ids": [],
        }
        try:
            result = await run_query(
                "track_query",
                lambda: self.db.table(ANALYTICS_TABLE).insert(insert_data).execute(),
            )
        except StoreError as e:
            logger.error(f"Error tracking search query: {e.detail}")
            return None
        return result.data[0]["id"] if result.data else None

    async def track_click(self, analytics_id: str, result_id: str) -> bool:
        """Append a clicked result id to an analytics entry (idempotent)."""
        try:
            result = await run_query(
                "fetch_clicks",
                lambda: self.db.table(ANALYTICS_TABLE)
                .select("clicked_result_ids")
                .eq("id", analytics_id)
                .limit(1)
                .execute(),
            )
            if not result.data:
                logger.error(f"Search analytics entry not found: {analytics_id}")
                return False

            clicked_ids = list(result.data[0].get("clicked_result_ids") or [])
            if result_id in clicked_ids:
                return True

            clicked_ids.append(result_id)
            await run_query(
                "track_click",
                lambda: self.db.table(ANALYTICS_TABLE)
                .update({"clicked_result_ids": clicked_ids})
                .eq("id", analytics_id)
                .execute(),
            )
        except StoreError as e:
            logger.error(f"Error tracking result click: {e.detail}")
            return False
        return True

    # ── Aggregations ─────────────────────────────────────

    async def get_history(self, user_id: str, limit: int = 20) -> list[SearchAnalyticsEntry]:
        try:
            result = await run_query(
                "search_history",
                lambda: self.db.table(ANALYTICS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute(),
            )
        except StoreError as e:
            logger.error(f"Error fetching search history: {e.detail}")
            return []
        return [SearchAnalyticsEntry(**row) for row in result.data or []]

    async def get_popular_queries(self, limit: int = 10, days_back: int = 30) -> list[PopularQuery]:
        try:
            result = await run_query(
                "popular_queries",
                lambda: self.db.rpc(
                    "get_popular_search_queries",
                    {"days_back": days_back, "query_limit": limit},
                ).execute(),
            )
        except StoreError as e:
            logger.error(f"Error fetching popular queries: {e.detail}")
            return []
        return [PopularQuery(**row) for row in result.data or []]

    async def get_summary(self, user_id: str, days_back: int = 30) -> AnalyticsSummary:
        try:
            result = await run_query(
                "analytics_summary",
                lambda: self.db.rpc(
                    "get_user_search_analytics",
                    {"target_user_id": user_id, "days_back": days_back},
                ).execute(),
            )
        except StoreError as e:
            logger.error(f"Error fetching search analytics summary: {e.detail}")
            return AnalyticsSummary()
        data = _rpc_object(result.data)
        return AnalyticsSummary(**data) if data else AnalyticsSummary()

    async def get_performance_metrics(self) -> PerformanceMetrics:
        try:
            result = await run_query(
                "performance_metrics",
                lambda: self.db.rpc("get_search_performance_metrics", {}).execute(),
            )
        except StoreError as e:
            logger.error(f"Error fetching search performance metrics: {e.detail}")
            return PerformanceMetrics()
        data = _rpc_object(result.data)
        return PerformanceMetrics(**data) if data else PerformanceMetrics()

    # ── Saved queries ────────────────────────────────────

    async def save_query(
        self,
        user_id: str,
        name: str,
        query: str,
        filters: SavedQueryFilters | None = None,
    ) -> SavedQuery | None:
        insert_data = {
            "user_id": user_id,
            "name": name.strip(),
            "query": query.strip(),
            "filters": (filters or SavedQueryFilters()).model_dump(by_alias=True, exclude_none=True),
            "use_count": 0,
        }
        try:
            result = await run_query(
                "save_query",
                lambda: self.db.table(SAVED_QUERIES_TABLE).insert(insert_data).execute(),
            )
        except StoreError as e:
            logger.error(f"Error saving query: {e.detail}")
            return None
        return SavedQuery(**result.data[0]) if result.data else None

    async def get_saved_queries(self, user_id: str) -> list[SavedQuery]:
        try:
            result = await run_query(
                "saved_queries",
                lambda: self.db.table(SAVED_QUERIES_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .order("last_used_at", desc=True)
                .execute(),
            )
        except StoreError as e:
            logger.error(f"Error fetching saved queries: {e.detail}")
            return []
        return [SavedQuery(**row) for row in result.data or []]

    async def get_saved_query(self, query_id: str, owner_id: str) -> SavedQuery:
        """Fetch a saved query the caller owns.

        Raises:
            NotFoundError: No saved query with that id.
            ForbiddenError: It belongs to another user.
            StoreError: The lookup itself failed.
        """
        result = await run_query(
            "get_saved_query",
            lambda: self.db.table(SAVED_QUERIES_TABLE).select("*").eq("id", query_id).limit(1).execute(),
        )
        if not result.data:
            raise NotFoundError("Saved query not found")
        saved = SavedQuery(**result.data[0])
        if saved.user_id != owner_id:
            raise ForbiddenError("You do not own this saved query")
        return saved

    async def update_usage(self, query_id: str, owner_id: str) -> bool:
        """Bump use_count and last_used_at after a saved query is re-run."""
        try:
            saved = await self.get_saved_query(query_id, owner_id)
            await run_query(
                "update_usage",
                lambda: self.db.table(SAVED_QUERIES_TABLE)
                .update({
                    "use_count": saved.use_count + 1,
                    "last_used_at": datetime.now(timezone.utc).isoformat(),
                })
                .eq("id", query_id)
                .eq("user_id", owner_id)
                .execute(),
            )
        except StoreError as e:
            logger.error(f"Error updating saved query usage: {e.detail}")
            return False
        return True

    async def delete_saved_query(self, query_id: str, owner_id: str) -> bool:
        try:
            await self.get_saved_query(query_id, owner_id)
            await run_query(
                "delete_saved_query",
                lambda: self.db.table(SAVED_QUERIES_TABLE)
                .delete()
                .eq("id", query_id)
                .eq("user_id", owner_id)
                .execute(),
            )
        except StoreError as e:
            logger.error(f"Error deleting saved query: {e.detail}")
            return False
        return True

    # ── Retention ────────────────────────────────────────

    async def cleanup(self, days_to_keep: int = 90) -> bool:
        """Delete analytics entries older than `days_to_keep` days."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days_to_keep)).isoformat()
        try:
            await run_query(
                "cleanup",
                lambda: self.db.table(ANALYTICS_TABLE).delete().lt("created_at", cutoff).execute(),
            )
        except StoreError as e:
            logger.error(f"Error cleaning up old search analytics: {e.detail}")
            return False
        logger.info(f"🗑️  Deleted search analytics older than {days_to_keep} days")
        return True
