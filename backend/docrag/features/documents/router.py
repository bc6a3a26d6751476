"""
Documents feature: API routes for indexing, search and chunk inspection.

Error bodies are `{"error": "<message>"}`; the messages are relied on by
existing clients and must not change.
"""

import logging
import math
import re

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Request

from docrag.background.document_tasks import process_file_pipeline
from docrag.config import get_settings
from docrag.core.dependencies import get_file_repository, get_indexer, get_search_engine
from docrag.core.exceptions import error_response
from docrag.features.documents.extractor import can_process, estimate_processing_time
from docrag.features.documents.indexer import DocumentIndexer
from docrag.features.documents.schemas import BatchProcessRequest, FileProcessRequest
from docrag.features.documents.store import FileRepository
from docrag.features.search.schemas import SearchOptions
from docrag.features.search.service import SearchEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Documents"])
files_router = APIRouter(tags=["Files"])

DEFAULT_THRESHOLD = get_settings().SEARCH_MATCH_THRESHOLD
DEFAULT_COUNT = get_settings().SEARCH_MATCH_COUNT


def _is_blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def _search_payload(query: str, results) -> dict:
    return {
        "success": True,
        "results": [r.model_dump(mode="json") for r in results],
        "query": query,
        "count": len(results),
    }


@router.post("/process")
async def process_document(
    request: Request,
    indexer: DocumentIndexer = Depends(get_indexer),
    file_repo: FileRepository = Depends(get_file_repository),
):
    """Chunk, embed and store the extracted text of a file."""
    try:
        body = await request.json()
        file_id = body.get("fileId")
        text_content = body.get("textContent")

        if _is_blank(file_id) or _is_blank(text_content):
            return error_response("File ID and text content are required", 400)

        file = await file_repo.get_file(file_id)
        if file is None:
            return error_response("File not found", 404)

        if not await indexer.process(file, text_content):
            return error_response("Failed to process document", 500)

        return {"success": True, "message": "Document processed successfully"}

    except Exception as e:
        logger.error(f"Error in document processing API: {e}")
        return error_response("Internal server error", 500)


@router.post("/reprocess")
async def reprocess_document(
    request: Request,
    indexer: DocumentIndexer = Depends(get_indexer),
    file_repo: FileRepository = Depends(get_file_repository),
):
    """Replace a file's chunks with a fresh set built from new text."""
    try:
        body = await request.json()
        file_id = body.get("fileId")
        text_content = body.get("textContent")

        if _is_blank(file_id) or _is_blank(text_content):
            return error_response("File ID and text content are required", 400)

        file = await file_repo.get_file(file_id)
        if file is None:
            return error_response("File not found", 404)

        if not await indexer.reprocess(file, text_content):
            return error_response("Failed to process document", 500)

        return {"success": True, "message": "Document reprocessed successfully"}

    except Exception as e:
        logger.error(f"Error in document reprocessing API: {e}")
        return error_response("Internal server error", 500)


@router.post("/search")
async def search_documents(
    request: Request,
    engine: SearchEngine = Depends(get_search_engine),
):
    """Semantic search. Body: {query, options?: {matchThreshold, matchCount, fileIds}}."""
    try:
        body = await request.json()
        query = body.get("query")
        options = body.get("options") or {}

        if _is_blank(query):
            return error_response("Search query is required", 400)

        search_options = SearchOptions(
            match_threshold=options.get("matchThreshold") or DEFAULT_THRESHOLD,
            match_count=options.get("matchCount") or DEFAULT_COUNT,
            file_ids=options.get("fileIds"),
        )
        results = await engine.search(query, search_options, user_id=body.get("userId"))
        return _search_payload(query.strip(), results)

    except Exception as e:
        logger.error(f"Error in document search API: {e}")
        return error_response("Internal server error", 500)


# Leading-prefix parsing, like JavaScript's parseFloat / parseInt
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))")
_INT_PREFIX = re.compile(r"\s*([+-]?)(?:0[xX]([0-9a-fA-F]+)|(\d+))")


def _parse_float(raw: str) -> float:
    match = _FLOAT_PREFIX.match(raw)
    return float(match.group(1)) if match else math.nan


def _parse_int(raw: str) -> float:
    match = _INT_PREFIX.match(raw)
    if not match:
        return math.nan
    sign, hex_digits, digits = match.groups()
    value = int(hex_digits, 16) if hex_digits else int(digits)
    return -value if sign == "-" else value


def _parse_number(raw: str | None, default: float, parse) -> float:
    """Mirror the legacy GET parsing: "0.9x" -> 0.9, "abc" -> NaN (not the default)."""
    if raw is None or raw == "":
        return default
    value = parse(raw)
    if math.isnan(value):
        logger.warning(f"Non-numeric search parameter passed through as NaN: {raw!r}")
    return value


@router.get("/search")
async def search_documents_get(
    q: str | None = None,
    threshold: str | None = None,
    count: str | None = None,
    fileIds: str | None = None,
    userId: str | None = None,
    engine: SearchEngine = Depends(get_search_engine),
):
    """Semantic search via query string: ?q=&threshold=&count=&fileIds=a,b"""
    try:
        if _is_blank(q):
            return error_response("Search query is required", 400)

        file_ids = [f for f in fileIds.split(",") if f] if fileIds else None
        search_options = SearchOptions(
            match_threshold=_parse_number(threshold, DEFAULT_THRESHOLD, _parse_float),
            match_count=_parse_number(count, DEFAULT_COUNT, _parse_int),
            file_ids=file_ids or None,
        )
        results = await engine.search(q, search_options, user_id=userId)
        return _search_payload(q.strip(), results)

    except Exception as e:
        logger.error(f"Error in document search API: {e}")
        return error_response("Internal server error", 500)


@router.get("/chunks/{file_id}")
async def get_document_chunks(
    file_id: str,
    indexer: DocumentIndexer = Depends(get_indexer),
):
    """All chunks of a file, ordered by chunk_index (embeddings omitted)."""
    try:
        chunks = await indexer.chunks_for(file_id)
        return {
            "success": True,
            "chunks": [c.model_dump(mode="json", exclude={"embedding"}) for c in chunks],
            "count": len(chunks),
        }
    except Exception as e:
        logger.error(f"Error fetching document chunks: {e}")
        return error_response("Internal server error", 500)


@router.delete("/chunks/{file_id}")
async def delete_document_chunks(
    file_id: str,
    indexer: DocumentIndexer = Depends(get_indexer),
):
    """Remove a file from the index (e.g. when the file is deleted)."""
    success = await indexer.delete_chunks(file_id)
    if not success:
        return error_response("Failed to delete document chunks", 500)
    return {"success": True}


@router.get("/statistics")
async def get_processing_statistics(indexer: DocumentIndexer = Depends(get_indexer)):
    stats = await indexer.statistics()
    return {"success": True, "data": stats.model_dump()}


# ── Stored-file processing ───────────────────────────────

@files_router.post("/process-batch")
async def process_batch(
    data: BatchProcessRequest,
    indexer: DocumentIndexer = Depends(get_indexer),
    file_repo: FileRepository = Depends(get_file_repository),
):
    """Process specific files, or every unprocessed processable file (max batch size)."""
    try:
        if data.file_ids:
            file_ids = list(data.file_ids)
        elif data.process_unprocessed_only:
            unprocessed = await file_repo.list_unprocessed()
            file_ids = [f.id for f in unprocessed if can_process(f.mime_type)]
        else:
            file_ids = []
    except Exception as e:
        logger.error(f"Failed to fetch unprocessed files: {e}")
        return error_response("Failed to fetch unprocessed files", 500)

    if not file_ids:
        return {"message": "No files to process", "processed": 0, "failed": 0, "results": []}

    file_ids = file_ids[: get_settings().MAX_BATCH_SIZE]

    results = []
    processed = failed = 0
    for file_id in file_ids:
        result = await indexer.process_file(file_id, data)
        if result.success:
            processed += 1
            results.append({"fileId": file_id, "success": True, "chunks": len(result.chunks)})
        else:
            failed += 1
            results.append({"fileId": file_id, "success": False, "error": result.error})

    return {
        "message": f"Batch processing completed. {processed} files processed, {failed} failed.",
        "processed": processed,
        "failed": failed,
        "total": len(file_ids),
        "results": results,
    }


@files_router.get("/process-batch")
async def get_batch_status(
    indexer: DocumentIndexer = Depends(get_indexer),
    file_repo: FileRepository = Depends(get_file_repository),
):
    """Processing statistics plus a preview of files waiting to be indexed."""
    stats = await indexer.statistics()
    try:
        unprocessed = await file_repo.list_unprocessed()
    except Exception as e:
        logger.error(f"Failed to fetch unprocessed files: {e}")
        return error_response("Failed to fetch unprocessed files", 500)

    processable = [f for f in unprocessed if can_process(f.mime_type)]
    return {
        "stats": stats.model_dump(),
        "unprocessed_files": len(processable),
        "unprocessed_files_list": [
            f.model_dump(mode="json", include={"id", "filename", "mime_type", "file_size", "created_at"})
            for f in processable[:20]
        ],
        "total_unprocessed": len(unprocessed),
    }


@files_router.post("/{file_id}/process")
async def process_stored_file(
    file_id: str,
    background_tasks: BackgroundTasks,
    data: FileProcessRequest | None = Body(None),
    background: bool = False,
    indexer: DocumentIndexer = Depends(get_indexer),
    file_repo: FileRepository = Depends(get_file_repository),
):
    """Download a stored file and index it.

    With `?background=true` the pipeline runs after the response is sent.
    """
    data = data or FileProcessRequest()
    try:
        file = await file_repo.get_file(file_id)
        if file is None:
            return error_response("File not found", 404)

        if not can_process(file.mime_type):
            return error_response(f"File type {file.mime_type} cannot be processed for RAG", 400)

        if background:
            background_tasks.add_task(process_file_pipeline, indexer, file_id, data)
            return {
                "success": True,
                "message": "File is being processed in the background.",
                "estimated_seconds": estimate_processing_time(file.file_size or 0, file.mime_type or ""),
            }

        result = await indexer.process_file(file_id, data, reprocess=data.reprocess)
        if not result.success:
            return error_response(result.error or "Processing failed", 500)

        return {
            "success": True,
            "message": f"File processed successfully. Generated {len(result.chunks)} chunks.",
            "chunks_count": len(result.chunks),
        }
    except Exception as e:
        logger.error(f"File processing error: {e}")
        return error_response("Internal server error", 500)


@files_router.get("/{file_id}/process")
async def get_processing_status(
    file_id: str,
    indexer: DocumentIndexer = Depends(get_indexer),
    file_repo: FileRepository = Depends(get_file_repository),
):
    """Processed flag, chunk total and the first five chunks of a file."""
    try:
        file = await file_repo.get_file(file_id)
        if file is None:
            return error_response("File not found", 404)

        sample = await indexer.chunks_for(file_id, limit=5)
        total = await indexer.chunk_store.count_chunks(file_id)

        return {
            "file": {
                "id": file.id,
                "filename": file.filename,
                "is_processed": file.is_processed,
                "mime_type": file.mime_type,
                "file_size": file.file_size,
                "can_process": can_process(file.mime_type),
                "is_indexing": indexer.is_indexing(file_id),
            },
            "processing": {
                "total_chunks": total,
                "sample_chunks": [
                    c.model_dump(mode="json", include={"id", "content", "chunk_index", "metadata"})
                    for c in sample
                ],
            },
        }
    except Exception as e:
        logger.error(f"Error getting processing status: {e}")
        return error_response("Internal server error", 500)
