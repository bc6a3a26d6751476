"""
Analytics feature: API routes for search tracking and saved queries.

Tracking and click endpoints never turn store errors into HTTP errors:
they answer 200 with a null id / false flag and the failure is logged.
"""

import logging

from fastapi import APIRouter, Depends

from docrag.core.dependencies import get_tracker
from docrag.core.exceptions import error_response
from docrag.features.analytics.schemas import (
    OwnerRequest,
    SaveQueryRequest,
    TrackClickRequest,
    TrackQueryRequest,
)
from docrag.features.analytics.service import AnalyticsTracker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Search Analytics"])


def _to_int(raw: str | None, default: int) -> int:
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@router.post("/analytics")
async def track_search(
    data: TrackQueryRequest,
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """Record a search that was run client-side."""
    if not data.user_id or not data.query:
        return error_response("User ID and query are required", 400)

    analytics_id = await tracker.track_query(
        data.user_id,
        data.query,
        data.results_count or 0,
        data.similarity_threshold or 0.78,
        data.execution_time_ms or 0,
    )
    return {"success": True, "analyticsId": analytics_id}


@router.get("/analytics")
async def get_search_analytics(
    userId: str | None = None,
    type: str = "history",
    limit: str | None = None,
    daysBack: str | None = None,
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """type=history | summary | popular"""
    if not userId:
        return error_response("User ID is required", 400)

    limit_value = _to_int(limit, 20)
    days_back = _to_int(daysBack, 30)

    match type:
        case "history":
            entries = await tracker.get_history(userId, limit_value)
            data = [e.model_dump(mode="json") for e in entries]
        case "summary":
            data = (await tracker.get_summary(userId, days_back)).model_dump()
        case "popular":
            data = [p.model_dump() for p in await tracker.get_popular_queries(limit_value, days_back)]
        case _:
            return error_response("Invalid analytics type", 400)

    return {"success": True, "data": data, "type": type}


@router.get("/analytics/metrics")
async def get_performance_metrics(tracker: AnalyticsTracker = Depends(get_tracker)):
    metrics = await tracker.get_performance_metrics()
    return {"success": True, "data": metrics.model_dump()}


@router.post("/analytics/{analytics_id}/click")
async def track_result_click(
    analytics_id: str,
    data: TrackClickRequest,
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    if not data.result_id:
        return error_response("Analytics ID and Result ID are required", 400)

    success = await tracker.track_click(analytics_id, data.result_id)
    return {"success": success}


# ── Saved queries ────────────────────────────────────────

@router.get("/saved-queries")
async def list_saved_queries(
    userId: str | None = None,
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    if not userId:
        return error_response("User ID is required", 400)

    queries = await tracker.get_saved_queries(userId)
    return {
        "success": True,
        "queries": [q.model_dump(mode="json") for q in queries],
        "count": len(queries),
    }


@router.post("/saved-queries")
async def save_query(
    data: SaveQueryRequest,
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    if not data.user_id or not data.name or not data.query:
        return error_response("User ID, name, and query are required", 400)

    saved = await tracker.save_query(data.user_id, data.name, data.query, data.filters)
    if saved is None:
        return error_response("Failed to save query", 500)

    return {"success": True, "query": saved.model_dump(mode="json")}


@router.delete("/saved-queries/{query_id}")
async def delete_saved_query(
    query_id: str,
    data: OwnerRequest,
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """Delete a saved query. 404 if missing, 403 if owned by someone else."""
    if not data.user_id:
        return error_response("Query ID and User ID are required", 400)

    if not await tracker.delete_saved_query(query_id, data.user_id):
        return error_response("Failed to delete query", 500)

    return {"success": True, "message": "Query deleted successfully"}


@router.post("/saved-queries/{query_id}/use")
async def use_saved_query(
    query_id: str,
    data: OwnerRequest,
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """Record that a saved query was re-run."""
    if not data.user_id:
        return error_response("Query ID and User ID are required", 400)

    if not await tracker.update_usage(query_id, data.user_id):
        return error_response("Failed to update query usage", 500)

    return {"success": True, "message": "Query usage updated"}
