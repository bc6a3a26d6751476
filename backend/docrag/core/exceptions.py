"""
Custom exception classes for unified error handling.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppBaseError(Exception):
    """Base exception for all application errors."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ValidationError(AppBaseError):
    """Raised on bad or missing input (empty query, missing file id...)."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppBaseError):
    """Raised when a file or record does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(AppBaseError):
    """Raised when a user tries to mutate a record they don't own."""
    status_code = status.HTTP_403_FORBIDDEN


class UnsupportedTypeError(AppBaseError):
    """Raised when text cannot be extracted for a media type."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, mime_type: str):
        super().__init__(
            message=f"Unsupported file type: {mime_type}",
            detail="Supported: text, CSV, JSON, HTML, PDF, Word and Excel files.",
        )
        self.mime_type = mime_type


# ── Embedding provider ───────────────────────────────────

class EmbeddingError(AppBaseError):
    """Base class for embedding provider failures."""
    status_code = status.HTTP_502_BAD_GATEWAY


class ProviderError(EmbeddingError):
    """Transport, authentication or malformed-response failure."""


class RateLimitedError(EmbeddingError):
    """Provider answered 429 - retried with backoff."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class QuotaExceededError(EmbeddingError):
    """Provider reports insufficient quota - DO NOT RETRY."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


# ── Persistence ──────────────────────────────────────────

class StoreError(AppBaseError):
    """Raised when a Supabase table/RPC call fails."""

    def __init__(self, operation: str, original_error: str):
        super().__init__(
            message=f"Store operation '{operation}' failed",
            detail=original_error,
        )
        self.operation = operation


# ── Utility: convert to JSON error responses ─────────────

def error_response(message: str, status_code: int, detail: str | None = None) -> JSONResponse:
    """Build the `{"error": ...}` body every endpoint returns on failure."""
    content = {"error": message}
    if detail:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content)


async def app_error_handler(request: Request, exc: AppBaseError) -> JSONResponse:
    """FastAPI exception handler: AppBaseError -> consistent JSON body."""
    return error_response(exc.message, exc.status_code, exc.detail)
