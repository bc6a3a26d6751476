"""
Provider-agnostic embedding model factory.

Switch embedding provider by changing env vars, no code changes needed:
  EMBEDDING_PROVIDER=openai | gemini
  EMBEDDING_MODEL=text-embedding-3-small | gemini-embedding-001
  EMBEDDING_API_KEY=your-key
"""

from langchain_core.embeddings import Embeddings

from docrag.config import get_settings


def create_embeddings() -> Embeddings:
    """Create an embedding model based on env configuration.

    Returns:
        Embeddings instance for vector generation.

    Raises:
        ValueError: If provider is not supported.
    """
    settings = get_settings()

    match settings.EMBEDDING_PROVIDER:
        case "openai":
            from langchain_openai import OpenAIEmbeddings

            # Retries are owned by EmbeddingClient, not the SDK.
            return OpenAIEmbeddings(
                model=settings.EMBEDDING_MODEL,
                api_key=settings.EMBEDDING_API_KEY,
                max_retries=0,
            )

        case "gemini":
            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            return GoogleGenerativeAIEmbeddings(
                model=f"models/{settings.EMBEDDING_MODEL}",
                google_api_key=settings.EMBEDDING_API_KEY,
            )

        case _:
            raise ValueError(
                f"Unknown embedding provider: '{settings.EMBEDDING_PROVIDER}'. "
                f"Supported: openai, gemini"
            )
