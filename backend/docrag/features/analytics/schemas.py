"""
Analytics feature: Schemas for search analytics and saved queries.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SearchAnalyticsEntry(BaseModel):
    id: str
    user_id: str
    query: str
    results_count: int = 0
    similarity_threshold: float = 0.78
    execution_time_ms: float = 0
    clicked_result_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")


class SavedQueryFilters(BaseModel):
    file_ids: list[str] | None = Field(None, alias="fileIds")
    similarity_threshold: float | None = Field(None, alias="similarityThreshold")
    max_results: int | None = Field(None, alias="maxResults")

    model_config = ConfigDict(populate_by_name=True)


class SavedQuery(BaseModel):
    id: str
    user_id: str
    name: str
    query: str
    filters: SavedQueryFilters = Field(default_factory=SavedQueryFilters)
    use_count: int = 0
    last_used_at: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")


class PopularQuery(BaseModel):
    query: str
    count: int
    avg_results: float = 0


class QueryCount(BaseModel):
    query: str
    count: int


class DailyCount(BaseModel):
    date: str
    count: int


class AnalyticsSummary(BaseModel):
    total_searches: int = 0
    avg_results_per_search: float = 0
    avg_execution_time: float = 0
    top_queries: list[QueryCount] = Field(default_factory=list)
    search_trends: list[DailyCount] = Field(default_factory=list)


class SlowQuery(BaseModel):
    query: str
    avg_time: float
    count: int


class ResultClicks(BaseModel):
    result_id: str
    click_count: int


class PerformanceMetrics(BaseModel):
    avg_execution_time: float = 0
    slow_queries: list[SlowQuery] = Field(default_factory=list)
    popular_results: list[ResultClicks] = Field(default_factory=list)
    query_success_rate: float = 0


# ── Requests ─────────────────────────────────────────────

class TrackQueryRequest(BaseModel):
    user_id: str | None = Field(None, alias="userId")
    query: str | None = None
    results_count: int | None = Field(None, alias="resultsCount")
    similarity_threshold: float | None = Field(None, alias="similarityThreshold")
    execution_time_ms: float | None = Field(None, alias="executionTimeMs")

    model_config = ConfigDict(populate_by_name=True)


class TrackClickRequest(BaseModel):
    result_id: str | None = Field(None, alias="resultId")

    model_config = ConfigDict(populate_by_name=True)


class SaveQueryRequest(BaseModel):
    user_id: str | None = Field(None, alias="userId")
    name: str | None = None
    query: str | None = None
    filters: SavedQueryFilters = Field(default_factory=SavedQueryFilters)

    model_config = ConfigDict(populate_by_name=True)


class OwnerRequest(BaseModel):
    user_id: str | None = Field(None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)
