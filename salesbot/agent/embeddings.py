"""
Embedding clients.

Turns text into fixed-width vectors for the sale vector index. The OpenAI
client goes through langchain's OpenAIEmbeddings; the Ollama client talks
to the server's /api/embed endpoint directly with httpx.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog
from langchain_openai import OpenAIEmbeddings

from salesbot.exceptions.sales import EmbeddingServiceException
from salesbot.settings.embedding import EmbeddingConfig, EmbeddingProvider

logger = structlog.get_logger(__name__)


class EmbeddingClient(ABC):
    """Contract shared by every embedding provider."""

    def __init__(self, config: EmbeddingConfig) -> None:
        self.config = config

    @property
    def provider(self) -> str:
        return str(self.config.PROVIDER)

    def _check_dimensions(self, vectors: list[list[float]]) -> list[list[float]]:
        for vector in vectors:
            if not isinstance(vector, list):
                raise EmbeddingServiceException(
                    message="Embedding response holds a non-list vector",
                    provider=self.provider,
                )
            if len(vector) != self.config.DIMENSIONS:
                raise EmbeddingServiceException(
                    message=(
                        f"Embedding has {len(vector)} dimensions, "
                        f"expected {self.config.DIMENSIONS}"
                    ),
                    provider=self.provider,
                )
        return vectors

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """
        Embed several texts in one provider call.

        Returns:
            One vector per input text, in input order

        Raises:
            EmbeddingServiceException: If the provider fails or returns
                vectors of the wrong width
        """
        if not texts:
            return []
        vectors = await self._embed(texts)
        if len(vectors) != len(texts):
            raise EmbeddingServiceException(
                message=f"Provider returned {len(vectors)} embeddings for {len(texts)} texts",
                provider=self.provider,
            )
        return self._check_dimensions(vectors)

    @abstractmethod
    async def _embed(self, texts: list[str]) -> list[list[float]]:
        ...

    async def close(self) -> None:
        """Release provider resources."""


class OpenAIEmbeddingClient(EmbeddingClient):
    def __init__(self, config: EmbeddingConfig) -> None:
        super().__init__(config)
        options = {}
        # Only the text-embedding-3 family accepts a requested width
        if config.MODEL.startswith("text-embedding-3"):
            options["dimensions"] = config.DIMENSIONS
        self.embeddings = OpenAIEmbeddings(
            model=config.MODEL,
            api_key=config.OPENAI_API_KEY or None,
            timeout=config.TIMEOUT,
            **options,
        )

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        try:
            return await self.embeddings.aembed_documents(texts)
        except Exception as e:
            logger.error("OpenAI embedding request failed", error=str(e))
            raise EmbeddingServiceException(
                message="Embedding request failed", provider=self.provider
            ) from e


class OllamaEmbeddingClient(EmbeddingClient):
    def __init__(self, config: EmbeddingConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(config)
        self.client = client or httpx.AsyncClient(
            base_url=config.OLLAMA_BASE_URL.rstrip("/"),
            timeout=config.TIMEOUT,
        )

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self.client.post(
                "/api/embed", json={"model": self.config.MODEL, "input": texts}
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(
                "Ollama embedding request failed",
                model=self.config.MODEL,
                error=str(e),
            )
            raise EmbeddingServiceException(
                message="Embedding request failed", provider=self.provider
            ) from e
        except ValueError as e:
            logger.error(
                "Ollama embedding response is not JSON",
                model=self.config.MODEL,
                error=str(e),
            )
            raise EmbeddingServiceException(
                message="Embedding response is not valid JSON", provider=self.provider
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("embeddings"), list):
            raise EmbeddingServiceException(
                message="Embedding response has no 'embeddings' field",
                provider=self.provider,
            )
        return data["embeddings"]

    async def close(self) -> None:
        await self.client.aclose()


def create_embedding_client(config: EmbeddingConfig) -> EmbeddingClient:
    if config.PROVIDER == EmbeddingProvider.OLLAMA:
        return OllamaEmbeddingClient(config)
    return OpenAIEmbeddingClient(config)


_embedding_client: Optional[EmbeddingClient] = None


def init_embedding_client(config: EmbeddingConfig) -> EmbeddingClient:
    """Create the global embedding client for the configured provider."""
    global _embedding_client
    if _embedding_client is None:
        _embedding_client = create_embedding_client(config)
        logger.info(
            "Embedding client created",
            provider=str(config.PROVIDER),
            model=config.MODEL,
            dimensions=config.DIMENSIONS,
        )
    return _embedding_client


def get_embedding_client() -> EmbeddingClient:
    if _embedding_client is None:
        raise RuntimeError(
            "Embedding client not initialized. Call init_embedding_client() first."
        )
    return _embedding_client


async def close_embedding_client() -> None:
    global _embedding_client
    if _embedding_client is not None:
        await _embedding_client.close()
        _embedding_client = None
