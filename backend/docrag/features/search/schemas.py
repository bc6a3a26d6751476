"""
Search feature: Schemas for search options and requests.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docrag.features.documents.schemas import SearchResult


class SearchOptions(BaseModel):
    match_threshold: float = Field(0.78, alias="matchThreshold")
    match_count: int | float = Field(10, alias="matchCount")
    file_ids: list[str] | None = Field(None, alias="fileIds")
    timeout: float | None = None  # seconds; None -> settings default

    model_config = ConfigDict(populate_by_name=True)


class SearchRequest(BaseModel):
    # Left untyped so a non-string query is answered with the same 400 as an empty one.
    query: Any = None
    options: dict[str, Any] | None = None
    user_id: str | None = Field(None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class SearchResponse(BaseModel):
    success: bool = True
    results: list[SearchResult]
    query: str
    count: int
