"""
Shared test doubles: in-memory stores, a deterministic embedding model
and a tiny stand-in for the Supabase query builder.
"""

import asyncio
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from langchain_core.embeddings import Embeddings

from docrag.core.exceptions import StoreError
from docrag.features.documents.embedding import EmbeddingClient
from docrag.features.documents.schemas import FileRecord

DIMS = 8


class FakeEmbeddings(Embeddings):
    """Deterministic vectors; `failures` are raised (in order) before answering."""

    def __init__(self, dims: int = DIMS, failures=None):
        self.dims = dims
        self.failures = list(failures or [])
        self.query_calls: list[str] = []
        self.document_calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        seed = sum(ord(c) for c in text)
        return [((seed + i) % 17) / 17 for i in range(self.dims)]

    def _maybe_fail(self):
        if self.failures:
            raise self.failures.pop(0)

    def embed_documents(self, texts):
        self.document_calls.append(list(texts))
        self._maybe_fail()
        return [self._vector(t) for t in texts]

    def embed_query(self, text):
        self.query_calls.append(text)
        self._maybe_fail()
        return self._vector(text)

    async def aembed_documents(self, texts):
        return self.embed_documents(texts)

    async def aembed_query(self, text):
        return self.embed_query(text)


async def no_sleep(delay: float) -> None:
    return None


class FakeChunkStore:
    """document_chunks + search_documents, kept in a dict per file."""

    def __init__(self, matches=None, delay: float = 0):
        self.rows: dict[str, list[dict]] = {}
        self.matches: list[dict] = list(matches or [])
        self.match_calls: list[dict] = []
        self.fail_on: set[str] = set()
        self.delay = delay
        self.active = 0
        self.max_active = 0

    def _check(self, operation: str):
        if operation in self.fail_on:
            raise StoreError(operation, "connection refused")

    async def replace_chunks(self, file_id, rows):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            self._check("replace_chunks")
            self.rows[file_id] = [dict(r, id=f"{file_id}-{r['chunk_index']}") for r in rows]
        finally:
            self.active -= 1

    async def delete_chunks(self, file_id):
        self._check("delete_chunks")
        self.rows.pop(file_id, None)

    async def list_chunks(self, file_id, limit=None):
        self._check("list_chunks")
        rows = sorted(self.rows.get(file_id, []), key=lambda r: r["chunk_index"])
        return rows[:limit] if limit else rows

    async def count_chunks(self, file_id=None):
        self._check("count_chunks")
        if file_id:
            return len(self.rows.get(file_id, []))
        return sum(len(rows) for rows in self.rows.values())

    async def match_chunks(self, query_embedding, match_threshold, match_count, file_ids=None):
        self.match_calls.append({
            "query_embedding": query_embedding,
            "match_threshold": match_threshold,
            "match_count": match_count,
            "file_ids": file_ids,
        })
        await asyncio.sleep(self.delay)
        self._check("match_chunks")
        rows = [m for m in self.matches if m["similarity"] >= match_threshold]
        rows.sort(key=lambda m: m["similarity"], reverse=True)
        return rows[: int(match_count)]


class FakeFileRepository:
    def __init__(self, files=None, blobs=None):
        self.files: dict[str, FileRecord] = {f.id: f for f in files or []}
        self.blobs: dict[str, bytes] = dict(blobs or {})
        self.fail_on: set[str] = set()

    def _check(self, operation: str):
        if operation in self.fail_on:
            raise StoreError(operation, "connection refused")

    async def get_file(self, file_id):
        self._check("get_file")
        return self.files.get(file_id)

    async def mark_processed(self, file_id, processed=True):
        self._check("mark_processed")
        if file_id in self.files:
            self.files[file_id] = self.files[file_id].model_copy(update={"is_processed": processed})

    async def list_unprocessed(self):
        self._check("list_unprocessed")
        return [f for f in self.files.values() if not f.is_processed]

    async def processed_counts(self):
        self._check("processed_counts")
        return len(self.files), sum(1 for f in self.files.values() if f.is_processed)

    async def download(self, file_path):
        self._check("download")
        if file_path not in self.blobs:
            raise StoreError("download", "Object not found")
        return self.blobs[file_path]


# -- Supabase query builder stand-in (used by AnalyticsTracker) --

class FakeResult:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self._order = None
        self._limit = None

    def select(self, *columns, **kwargs):
        self.action = "select"
        return self

    def insert(self, data):
        self.action, self.payload = "insert", data
        return self

    def update(self, data):
        self.action, self.payload = "update", data
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def lt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] < value)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self):
        self.db.calls.append((self.table, self.action))
        if self.db.fail:
            raise RuntimeError("connection refused")

        rows = self.db.tables.setdefault(self.table, [])
        if self.action == "insert":
            row = {"id": str(uuid4()), "created_at": datetime.now(timezone.utc).isoformat(), **self.payload}
            rows.append(row)
            return FakeResult([dict(row)])

        matched = [r for r in rows if all(f(r) for f in self.filters)]
        if self.action == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResult([dict(r) for r in matched])
        if self.action == "delete":
            self.db.tables[self.table] = [r for r in rows if not any(r is m for m in matched)]
            return FakeResult([dict(r) for r in matched])

        if self._order:
            column, desc = self._order
            matched.sort(key=lambda r: str(r.get(column) or ""), reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResult([dict(r) for r in matched])


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: dict):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpc_calls.append((self.name, self.params))
        if self.db.fail:
            raise RuntimeError("connection refused")
        return FakeResult(self.db.rpc_results.get(self.name))


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.rpc_results: dict = {}
        self.calls: list[tuple[str, str]] = []
        self.rpc_calls: list[tuple[str, dict]] = []
        self.fail = False

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params or {})


# -- Fixtures --

@pytest.fixture
def fake_model():
    return FakeEmbeddings()


@pytest.fixture
def embedding_client(fake_model):
    return EmbeddingClient(fake_model, dimensions=DIMS, sleep=no_sleep)


@pytest.fixture
def chunk_store():
    return FakeChunkStore()


@pytest.fixture
def text_file():
    return FileRecord(
        id="file-1",
        filename="notes.txt",
        mime_type="text/plain",
        file_size=120,
        file_path="u1/notes.txt",
    )


@pytest.fixture
def file_repo(text_file):
    return FakeFileRepository(
        files=[text_file],
        blobs={"u1/notes.txt": b"Field service notes. The pump was replaced on site."},
    )


@pytest.fixture
def fake_db():
    return FakeSupabase()
