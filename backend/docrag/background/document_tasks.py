"""
Background tasks for indexing stored files.
Designed to run as a FastAPI BackgroundTask after the response is sent.
"""

import logging

from docrag.features.documents.indexer import DocumentIndexer
from docrag.features.documents.schemas import FileProcessRequest

logger = logging.getLogger(__name__)


async def process_file_pipeline(indexer: DocumentIndexer, file_id: str, options: FileProcessRequest):
    """Download, extract, chunk, embed and store one file.

    The indexer's per-file lock still applies, so a request for the same
    file arriving meanwhile waits for this run.
    """
    logger.info(f"🚀 Starting background processing for file_id: {file_id}")
    result = await indexer.process_file(file_id, options, reprocess=options.reprocess)
    if result.success:
        logger.info(f"✅ Background processing finished for {file_id}: {len(result.chunks)} chunks")
    else:
        # The files row keeps is_processed=false, so the batch endpoint picks it up again
        logger.error(f"❌ Background processing failed for {file_id}: {result.error}")
