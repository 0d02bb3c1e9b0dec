"""
Embedding provider configuration.
"""

from enum import StrEnum

from pydantic import BaseModel, Field


class EmbeddingProvider(StrEnum):
    OPENAI = "openai"
    OLLAMA = "ollama"


class VectorBackend(StrEnum):
    PGVECTOR = "pgvector"
    MEMORY = "memory"


class EmbeddingConfig(BaseModel):
    PROVIDER: EmbeddingProvider = Field(
        default=EmbeddingProvider.OPENAI,
        description="Service that turns text into vectors",
    )
    MODEL: str = Field(
        default="text-embedding-3-small",
        description="Embedding model name",
    )
    DIMENSIONS: int = Field(
        default=1536,
        gt=0,
        description="Vector width; fixed for the lifetime of a deployment",
    )
    OLLAMA_BASE_URL: str = Field(
        default="http://localhost:11434",
        description="Ollama server used when PROVIDER is ollama",
    )
    OPENAI_API_KEY: str = Field(
        default="",
        description="API key for the OpenAI embeddings endpoint",
    )
    TIMEOUT: float = Field(
        default=30.0,
        description="Request timeout in seconds",
    )
    VECTOR_BACKEND: VectorBackend = Field(
        default=VectorBackend.PGVECTOR,
        description="Where sale embeddings are stored and searched",
    )
