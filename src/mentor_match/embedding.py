"""Embedding client abstraction for profile and query vectors.

Wraps the OpenAI embeddings API. A call is attempted ``max_attempts`` times
(one by default); any remaining failure surfaces as ``ProviderError`` and the
caller decides whether to re-run the whole operation.
"""

import asyncio
import os
from typing import Protocol

import httpx
from loguru import logger
from openai import APIConnectionError, AsyncOpenAI, OpenAIError, RateLimitError
from pydantic import BaseModel, Field

from mentor_match.errors import (
    ConfigurationError,
    DimensionMismatchError,
    ProviderError,
    ValidationError,
)


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation.

    Attributes:
        model: Model identifier (e.g., "openai/text-embedding-3-small")
        version: Version tag recorded for reindexing decisions (e.g., "v1")
        dimensions: Expected embedding dimensionality, agreed with the index
        batch_size: Number of texts to embed per API call
        max_attempts: Attempts per call for transient failures (1 = no retry)
        timeout_seconds: API request timeout
        api_key: API key (falls back to OPENAI_API_KEY)
    """

    model: str
    version: str = "v1"
    dimensions: int = Field(default=1536, ge=128, le=4096)
    batch_size: int = Field(default=100, ge=1, le=500)
    max_attempts: int = Field(default=1, ge=1, le=10)
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)
    api_key: str | None = None


class EmbeddingClient(Protocol):
    """Protocol for embedding client implementations."""

    dimensions: int

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a batch of texts.

        Args:
            texts: List of input texts (max batch_size)

        Returns:
            List of embedding vectors (same order as inputs)

        Raises:
            ValidationError: If a text is blank or the batch is too large
            ProviderError: For upstream failures
            DimensionMismatchError: If a returned vector has the wrong length
        """
        ...

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...


class OpenAIEmbedding:
    """OpenAI embedding client with batching and dimension checks."""

    def __init__(self, config: EmbeddingConfig):
        """Initialize OpenAI client.

        Args:
            config: Embedding configuration

        Raises:
            ConfigurationError: If no API key is configured
        """
        api_key = config.api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key is not set; configure embedding.api_key or OPENAI_API_KEY"
            )

        self.config = config
        self.dimensions = config.dimensions
        # SDK-level retries disabled; attempts are governed by config.max_attempts
        self.client = AsyncOpenAI(api_key=api_key, timeout=config.timeout_seconds, max_retries=0)
        self.model_name = config.model.removeprefix("openai/")

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a batch of texts.

        Args:
            texts: List of input texts (max batch_size)

        Returns:
            List of embedding vectors (same order as inputs)

        Raises:
            ValidationError: If batch size exceeds config limit or a text is blank
            ProviderError: For API failures after all attempts
            DimensionMismatchError: If the provider returns the wrong dimension
        """
        if len(texts) > self.config.batch_size:
            raise ValidationError(
                f"Batch size {len(texts)} exceeds limit {self.config.batch_size}"
            )

        if not texts:
            return []

        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ValidationError(f"Cannot embed empty text (position {i})")

        logger.debug(
            f"Embedding {len(texts)} texts ({sum(len(t) for t in texts)} chars) "
            f"with {self.model_name}"
        )

        for attempt in range(self.config.max_attempts):
            try:
                response = await self.client.embeddings.create(model=self.model_name, input=texts)
                embeddings = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
                break

            except (RateLimitError, APIConnectionError, httpx.TimeoutException) as e:
                logger.warning(
                    f"Transient embedding failure "
                    f"(attempt {attempt + 1}/{self.config.max_attempts}): {e}"
                )
                if attempt < self.config.max_attempts - 1:
                    await asyncio.sleep(2**attempt)
                else:
                    raise ProviderError(f"Embedding request failed: {e}") from e

            except (OpenAIError, httpx.HTTPError) as e:
                logger.error(f"Embedding request failed: {e}")
                raise ProviderError(f"Embedding request failed: {e}") from e

            except (AttributeError, TypeError) as e:
                raise ProviderError(f"Malformed embedding response: {e}") from e

        if len(embeddings) != len(texts):
            raise ProviderError(
                f"Provider returned {len(embeddings)} embeddings for {len(texts)} texts"
            )

        for i, emb in enumerate(embeddings):
            if len(emb) != self.config.dimensions:
                raise DimensionMismatchError(
                    expected=self.config.dimensions, actual=len(emb), subject=f"text {i}"
                )

        return embeddings

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Input text

        Returns:
            Embedding vector
        """
        embeddings = await self.embed_batch([text])
        return embeddings[0]


def create_embedding_client(config: EmbeddingConfig) -> EmbeddingClient:
    """Factory function to create embedding client based on model config.

    Args:
        config: Embedding configuration

    Returns:
        Embedding client implementation

    Example:
        >>> config = EmbeddingConfig(
        ...     model="openai/text-embedding-3-small",
        ...     dimensions=1536,
        ...     api_key="sk-..."
        ... )
        >>> client = create_embedding_client(config)
    """
    if config.model.startswith("openai/"):
        return OpenAIEmbedding(config)
    raise ConfigurationError(f"Unknown model prefix in {config.model!r}. Expected 'openai/'")
