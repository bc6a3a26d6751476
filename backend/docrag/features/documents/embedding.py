"""
Documents feature: Embedding client.
Wraps the provider's embedding model with error classification and
rate-limit retries for use across the app.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable

from langchain_core.embeddings import Embeddings

from docrag.config import get_settings
from docrag.core.exceptions import (
    EmbeddingError,
    ProviderError,
    QuotaExceededError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

_QUOTA_MARKERS = ("insufficient_quota", "exceeded your current quota", "billing")
_RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "too many requests", "resource exhausted", "resource_exhausted")


def _status_code(exc: Exception) -> int | None:
    for candidate in (exc, getattr(exc, "response", None)):
        code = getattr(candidate, "status_code", None)
        if isinstance(code, int):
            return code
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def classify_provider_error(exc: Exception) -> EmbeddingError:
    """Map an SDK exception onto the embedding error taxonomy."""
    if isinstance(exc, EmbeddingError):
        return exc

    message = str(exc)
    lowered = f"{getattr(exc, 'code', '')} {message}".lower()

    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return QuotaExceededError("Embedding provider quota exceeded", detail=message)
    if _status_code(exc) == 429 or any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
        return RateLimitedError("Embedding provider rate limit hit", detail=message)
    return ProviderError("Failed to generate embedding", detail=message)


class EmbeddingClient:
    """Text -> vector conversion with retry/backoff on rate limits.

    Quota exhaustion is surfaced immediately so callers one layer up can
    choose a fallback; every other failure is a `ProviderError`.
    """

    def __init__(
        self,
        model: Embeddings,
        dimensions: int | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        settings = get_settings()
        self.model = model
        self.dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
        self.max_retries = max(1, max_retries or settings.EMBEDDING_MAX_RETRIES)
        self.backoff_base = settings.EMBEDDING_BACKOFF_BASE if backoff_base is None else backoff_base
        self.backoff_max = settings.EMBEDDING_BACKOFF_MAX if backoff_max is None else backoff_max
        self._sleep = sleep

    async def _with_retry(self, call: Callable[[], Awaitable]):
        for attempt in range(self.max_retries):
            try:
                return await call()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = classify_provider_error(e)
                if not isinstance(error, RateLimitedError) or attempt == self.max_retries - 1:
                    logger.error(f"❌ Embedding call failed ({type(error).__name__}): {error.detail or error}")
                    raise error from e

                # Exponential backoff with jitter: 1s, 2s, 4s ...
                delay = min(self.backoff_base * (2 ** attempt), self.backoff_max)
                delay += random.uniform(0, self.backoff_base)
                logger.warning(
                    f"Embedding rate limited (attempt {attempt + 1}/{self.max_retries}), "
                    f"retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

    def _check(self, vectors: list[list[float]], expected: int) -> list[list[float]]:
        if len(vectors) != expected:
            raise ProviderError(
                "Mismatch between number of inputs and generated vectors",
                detail=f"expected {expected}, got {len(vectors)}",
            )
        trimmed = [list(v[: self.dimensions]) for v in vectors]
        if any(len(v) != self.dimensions for v in trimmed):
            raise ProviderError(
                "Embedding dimension mismatch",
                detail=f"expected {self.dimensions} dimensions",
            )
        return trimmed

    async def embed(self, text: str) -> list[float]:
        """Generate the embedding vector for a single text (query embedding)."""
        vector = await self._with_retry(lambda: self.model.aembed_query(text))
        return self._check([vector], 1)[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for many texts in one provider request.

        Returns:
            One vector per input, in input order.
        """
        if not texts:
            return []
        vectors = await self._with_retry(lambda: self.model.aembed_documents(texts))
        return self._check(vectors, len(texts))
