"""
HTTP-level tests: status codes and the exact error bodies clients depend on.
"""

import math

import pytest
from fastapi.testclient import TestClient

from conftest import FakeChunkStore, FakeFileRepository
from docrag.core.dependencies import (
    get_file_repository,
    get_indexer,
    get_search_engine,
    get_tracker,
)
from docrag.features.analytics.service import AnalyticsTracker
from docrag.features.documents.indexer import DocumentIndexer
from docrag.features.documents.router import _parse_float, _parse_int, _parse_number
from docrag.features.documents.schemas import ChunkingOptions, FileRecord
from docrag.features.search.service import SearchEngine
from docrag.main import create_app

TEXT = (
    "This is a test document with multiple sentences. "
    "It contains important information about field service operations. "
    "The document should be processed and made searchable."
)


@pytest.fixture
def services(embedding_client, fake_db):
    store = FakeChunkStore(matches=[
        {"id": "c1", "file_id": "f1", "content": "Field service operations", "metadata": {}, "similarity": 0.95},
        {"id": "c2", "file_id": "f2", "content": "Checklist", "metadata": {}, "similarity": 0.87},
    ])
    repo = FakeFileRepository(
        files=[
            FileRecord(id="f1", filename="notes.txt", mime_type="text/plain", file_size=150, file_path="u1/notes.txt"),
            FileRecord(id="f2", filename="photo.png", mime_type="image/png", file_path="u1/photo.png"),
        ],
        blobs={"u1/notes.txt": TEXT.encode()},
    )
    options = ChunkingOptions(chunk_size=50, chunk_overlap=10, max_chunks=100)
    return {
        "store": store,
        "repo": repo,
        "indexer": DocumentIndexer(store, repo, embedding_client, default_options=options),
        "engine": SearchEngine(store, repo, embedding_client),
        "tracker": AnalyticsTracker(fake_db),
        "db": fake_db,
    }


@pytest.fixture
def client(services):
    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_indexer] = lambda: services["indexer"]
    app.dependency_overrides[get_file_repository] = lambda: services["repo"]
    app.dependency_overrides[get_search_engine] = lambda: services["engine"]
    app.dependency_overrides[get_tracker] = lambda: services["tracker"]
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# -- /api/documents/process, /reprocess --

class TestProcessRoutes:
    def test_missing_fields(self, client):
        response = client.post("/api/documents/process", json={"fileId": "f1"})
        assert response.status_code == 400
        assert response.json() == {"error": "File ID and text content are required"}

    def test_unknown_file(self, client):
        response = client.post("/api/documents/process", json={"fileId": "nope", "textContent": TEXT})
        assert response.status_code == 404
        assert response.json() == {"error": "File not found"}

    def test_success(self, client, services):
        response = client.post("/api/documents/process", json={"fileId": "f1", "textContent": TEXT})
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Document processed successfully"}
        assert len(services["store"].rows["f1"]) >= 3

    def test_pipeline_failure(self, client, services):
        services["store"].fail_on.add("replace_chunks")
        response = client.post("/api/documents/process", json={"fileId": "f1", "textContent": TEXT})
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to process document"}

    def test_malformed_json(self, client):
        response = client.post(
            "/api/documents/process",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_reprocess(self, client, services):
        client.post("/api/documents/process", json={"fileId": "f1", "textContent": TEXT})
        response = client.post("/api/documents/reprocess", json={"fileId": "f1", "textContent": "Short."})
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert [r["content"] for r in services["store"].rows["f1"]] == ["Short."]


# -- /api/documents/search --

class TestSearchRoutes:
    def test_post_requires_query(self, client):
        response = client.post("/api/documents/search", json={"query": "   "})
        assert response.status_code == 400
        assert response.json() == {"error": "Search query is required"}

    def test_post_returns_ordered_results(self, client):
        response = client.post(
            "/api/documents/search",
            json={"query": "field service operations", "options": {"matchThreshold": 0.8, "matchCount": 10}},
        )
        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["count"] == 2
        assert [r["similarity"] for r in body["results"]] == [0.95, 0.87]
        assert body["results"][0]["file"]["filename"] == "notes.txt"

    def test_post_defaults_options(self, client, services):
        client.post("/api/documents/search", json={"query": "pumps"})
        call = services["store"].match_calls[-1]
        assert call["match_threshold"] == 0.78
        assert call["match_count"] == 10

    def test_get_requires_q(self, client):
        response = client.get("/api/documents/search")
        assert response.status_code == 400
        assert response.json() == {"error": "Search query is required"}

    def test_get_splits_file_ids(self, client, services):
        response = client.get("/api/documents/search", params={"q": "field", "fileIds": "f1,f2", "count": "5"})
        assert response.status_code == 200
        call = services["store"].match_calls[-1]
        assert call["file_ids"] == ["f1", "f2"]
        assert call["match_count"] == 5

    def test_get_non_numeric_threshold_yields_no_results(self, client, services):
        response = client.get("/api/documents/search", params={"q": "field", "threshold": "abc"})
        assert response.status_code == 200
        assert response.json()["count"] == 0
        assert math.isnan(services["store"].match_calls[-1]["match_threshold"])


# -- chunks, statistics --

class TestChunkRoutes:
    def test_list_and_delete(self, client, services):
        client.post("/api/documents/process", json={"fileId": "f1", "textContent": TEXT})

        response = client.get("/api/documents/chunks/f1")
        body = response.json()
        assert body["count"] == len(services["store"].rows["f1"])
        assert "embedding" not in body["chunks"][0]

        response = client.delete("/api/documents/chunks/f1")
        assert response.json() == {"success": True}
        assert client.get("/api/documents/chunks/f1").json()["count"] == 0

    def test_statistics(self, client):
        client.post("/api/documents/process", json={"fileId": "f1", "textContent": TEXT})
        data = client.get("/api/documents/statistics").json()["data"]
        assert data["total_files"] == 2
        assert data["processed_files"] == 1


# -- /api/files --

class TestFileRoutes:
    def test_process_stored_file(self, client, services):
        response = client.post("/api/files/f1/process")
        assert response.status_code == 200
        assert response.json()["chunks_count"] == len(services["store"].rows["f1"])

    def test_unprocessable_type(self, client):
        response = client.post("/api/files/f2/process")
        assert response.status_code == 400
        assert response.json() == {"error": "File type image/png cannot be processed for RAG"}

    def test_unknown_file(self, client):
        response = client.post("/api/files/missing/process")
        assert response.status_code == 404

    def test_processing_status(self, client):
        client.post("/api/files/f1/process")
        body = client.get("/api/files/f1/process").json()
        assert body["file"]["is_processed"] is True
        assert body["file"]["can_process"] is True
        assert len(body["processing"]["sample_chunks"]) <= 5

    def test_batch_processes_unprocessed(self, client, services):
        body = client.post("/api/files/process-batch", json={}).json()
        assert body["processed"] == 1
        assert body["failed"] == 0
        assert body["results"][0]["fileId"] == "f1"

    def test_batch_reports_failures(self, client):
        body = client.post("/api/files/process-batch", json={"fileIds": ["f1", "missing"]}).json()
        assert body["processed"] == 1
        assert body["failed"] == 1
        assert body["results"][1]["error"] == "File not found"

    def test_batch_status(self, client):
        body = client.get("/api/files/process-batch").json()
        assert body["unprocessed_files"] == 1
        assert body["total_unprocessed"] == 2


# -- /api/search analytics --

class TestAnalyticsRoutes:
    def test_track_requires_user_and_query(self, client):
        response = client.post("/api/search/analytics", json={"query": "pumps"})
        assert response.status_code == 400
        assert response.json() == {"error": "User ID and query are required"}

    def test_track_and_click(self, client, services):
        analytics_id = client.post(
            "/api/search/analytics", json={"userId": "u1", "query": "pumps", "resultsCount": 2}
        ).json()["analyticsId"]
        assert analytics_id

        for _ in range(2):
            response = client.post(f"/api/search/analytics/{analytics_id}/click", json={"resultId": "result-1"})
            assert response.json() == {"success": True}
        assert services["db"].tables["search_analytics"][0]["clicked_result_ids"] == ["result-1"]

    def test_click_store_failure_is_200(self, client, services):
        services["db"].fail = True
        response = client.post("/api/search/analytics/a1/click", json={"resultId": "r"})
        assert response.status_code == 200
        assert response.json() == {"success": False}

    def test_analytics_requires_user(self, client):
        response = client.get("/api/search/analytics")
        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}

    def test_invalid_analytics_type(self, client):
        response = client.get("/api/search/analytics", params={"userId": "u1", "type": "weird"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid analytics type"}

    def test_history(self, client):
        client.post("/api/search/analytics", json={"userId": "u1", "query": "pumps"})
        body = client.get("/api/search/analytics", params={"userId": "u1"}).json()
        assert body["type"] == "history"
        assert body["data"][0]["query"] == "pumps"

    def test_saved_query_ownership(self, client):
        saved = client.post(
            "/api/search/saved-queries", json={"userId": "u1", "name": "Pumps", "query": "pump failures"}
        ).json()["query"]

        response = client.request("DELETE", f"/api/search/saved-queries/{saved['id']}", json={"userId": "u2"})
        assert response.status_code == 403
        assert response.json() == {"error": "You do not own this saved query"}

        response = client.request("DELETE", "/api/search/saved-queries/missing", json={"userId": "u1"})
        assert response.status_code == 404

        response = client.post(f"/api/search/saved-queries/{saved['id']}/use", json={"userId": "u1"})
        assert response.status_code == 200

        queries = client.get("/api/search/saved-queries", params={"userId": "u1"}).json()["queries"]
        assert queries[0]["use_count"] == 1

        response = client.request("DELETE", f"/api/search/saved-queries/{saved['id']}", json={"userId": "u1"})
        assert response.json()["success"] is True

    def test_save_requires_fields(self, client):
        response = client.post("/api/search/saved-queries", json={"userId": "u1", "name": "n"})
        assert response.status_code == 400
        assert response.json() == {"error": "User ID, name, and query are required"}


# -- GET search number parsing --

class TestQueryNumberParsing:
    @pytest.mark.parametrize(
        "raw,expected",
        [("0.9", 0.9), ("0.9x", 0.9), (" .5", 0.5), ("-1e2abc", -100.0), ("7.", 7.0)],
    )
    def test_float_uses_leading_number(self, raw, expected):
        assert _parse_float(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [("10", 10), ("10abc", 10), ("1.5", 1), ("-3", -3), ("0x1A", 26)],
    )
    def test_int_uses_leading_number(self, raw, expected):
        assert _parse_int(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "x10", ".", "-"])
    def test_no_numeric_prefix_is_nan(self, raw):
        assert math.isnan(_parse_float(raw))
        assert math.isnan(_parse_int(raw))

    def test_missing_value_uses_default(self):
        assert _parse_number(None, 0.78, _parse_float) == 0.78
        assert _parse_number("", 10, _parse_int) == 10

    def test_route_applies_prefix_parsing(self, client, services):
        response = client.get(
            "/api/documents/search", params={"q": "field", "threshold": "0.9x", "count": "10abc"}
        )
        assert response.status_code == 200
        call = services["store"].match_calls[-1]
        assert call["match_threshold"] == 0.9
        assert call["match_count"] == 10
        assert [r["chunk_id"] for r in response.json()["results"]] == ["c1"]
