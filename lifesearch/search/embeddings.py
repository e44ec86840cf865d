from __future__ import annotations

"""Embedding providers, dimension padding and configuration validation."""

import hashlib
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from lifesearch.search.errors import ConfigurationError, SearchError
from lifesearch.search.tokenization import STOPWORDS, token_texts

logger = logging.getLogger(__name__)


class EmbeddingError(SearchError):
    """Raised when embeddings fail or are invalid."""
    pass


class EmbeddingConfigError(ConfigurationError):
    """Raised when embedding configuration is invalid."""
    pass


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""
    dimension: int

    @property
    def model_name(self) -> str:
        """Identifier of the backend and model producing vectors."""
        raise NotImplementedError

    def embed(self, text: str) -> list[float]:
        """Return an embedding vector for the provided text."""
        raise NotImplementedError

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Return one embedding per text, in order."""
        raise NotImplementedError


def validate_vector(vector: list[float], dimension: int) -> list[float]:
    """Validate and normalize embedding vectors."""
    if len(vector) != dimension:
        raise EmbeddingError(
            f"Embedding dimension mismatch: expected {dimension}, got {len(vector)}"
        )
    cleaned: list[float] = []
    for value in vector:
        if not isinstance(value, (int, float)):
            raise EmbeddingError("Embedding contains a non-numeric value")
        if not math.isfinite(value):
            raise EmbeddingError("Embedding contains a non-finite value")
        cleaned.append(float(value))
    return cleaned


def l2_normalize(vector: list[float]) -> list[float]:
    """Normalize vector magnitude to 1.0."""
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0.0:
        return vector
    return [value / norm for value in vector]


@dataclass
class HashEmbedder:
    """Deterministic hash-based embedder for testing or offline use."""
    dimension: int = 256

    def __post_init__(self) -> None:
        if self.dimension <= 0:
            raise EmbeddingConfigError("EMBEDDING_DIMENSION must be greater than zero")

    @property
    def model_name(self) -> str:
        return f"hash-{self.dimension}"

    def embed(self, text: str) -> list[float]:
        """Embed text using token hashing and L2 normalization."""
        tokens = [token for token in token_texts(text) if token not in STOPWORDS]
        vector = [0.0] * self.dimension
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dimension
            vector[idx] += 1.0
        return validate_vector(l2_normalize(vector), self.dimension)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


def resolve_openai_dimension(model: str) -> int | None:
    """Return expected dimension for OpenAI embedding model."""
    mapping = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }
    return mapping.get(model)


def resolve_ollama_dimension(model: str) -> int | None:
    """Return expected dimension for common Ollama embedding models."""
    mapping = {
        "nomic-embed-text": 768,
        "mxbai-embed-large": 1024,
        "all-minilm": 384,
        "snowflake-arctic-embed": 1024,
    }
    return mapping.get(model.split(":", 1)[0])


@dataclass
class OpenAIEmbedder:
    """Embedding provider using OpenAI embeddings API."""
    api_key: str
    model: str
    dimension: int
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate OpenAI configuration and create a client."""
        if not self.api_key:
            raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAIEmbedder")
        if not self.model:
            raise EmbeddingConfigError("OPENAI_EMBEDDING_MODEL is required for OpenAIEmbedder")
        resolved = resolve_openai_dimension(self.model)
        if self.dimension <= 0:
            if resolved is None:
                raise EmbeddingConfigError(
                    "EMBEDDING_DIMENSION must be set for OpenAI embeddings when model is unknown"
                )
            self.dimension = resolved
        elif resolved is not None and self.dimension != resolved:
            raise EmbeddingConfigError(
                f"EMBEDDING_DIMENSION should be {resolved} for model {self.model}"
            )
        from openai import OpenAI

        self.client = OpenAI(api_key=self.api_key)

    @property
    def model_name(self) -> str:
        return f"openai:{self.model}"

    def embed(self, text: str) -> list[float]:
        """Embed text using the OpenAI embeddings API."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        response = self.client.embeddings.create(model=self.model, input=texts)
        ordered = sorted(response.data, key=lambda item: item.index)
        return [validate_vector(list(item.embedding), self.dimension) for item in ordered]


@dataclass
class OllamaEmbedder:
    """Embedding provider using a local Ollama server."""
    base_url: str
    model: str
    dimension: int
    timeout: float = 60.0

    def __post_init__(self) -> None:
        if not self.model:
            raise EmbeddingConfigError("OLLAMA_EMBEDDING_MODEL is required for OllamaEmbedder")
        if self.dimension <= 0:
            resolved = resolve_ollama_dimension(self.model)
            if resolved is None:
                raise EmbeddingConfigError(
                    "EMBEDDING_DIMENSION must be set for Ollama embeddings when model is unknown"
                )
            self.dimension = resolved

    @property
    def model_name(self) -> str:
        return f"ollama:{self.model}"

    def embed(self, text: str) -> list[float]:
        """Embed text using the Ollama embed endpoint."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        payload = {"model": self.model, "input": texts}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(f"{self.base_url.rstrip('/')}/api/embed", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise EmbeddingError(f"Ollama embedding request failed: {exc}") from exc
        embeddings = data.get("embeddings")
        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            raise EmbeddingError("Ollama embedding response missing embeddings")
        return [validate_vector(list(vector), self.dimension) for vector in embeddings]


@dataclass
class PaddedEmbedder:
    """Pad vectors of a narrower backend with zeros up to a fixed width."""
    inner: EmbeddingProvider
    target_dimension: int

    def __post_init__(self) -> None:
        if self.target_dimension < self.inner.dimension:
            raise EmbeddingConfigError(
                f"Target dimension {self.target_dimension} is smaller than the native "
                f"dimension {self.inner.dimension} of {self.inner.model_name}"
            )

    @property
    def dimension(self) -> int:
        return self.target_dimension

    @property
    def native_dimension(self) -> int:
        return self.inner.dimension

    @property
    def model_name(self) -> str:
        return f"{self.inner.model_name}-padded-to-{self.target_dimension}"

    def _pad(self, vector: list[float]) -> list[float]:
        padding = self.target_dimension - len(vector)
        return vector + [0.0] * padding

    def embed(self, text: str) -> list[float]:
        return self._pad(validate_vector(self.inner.embed(text), self.inner.dimension))

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [
            self._pad(validate_vector(vector, self.inner.dimension))
            for vector in self.inner.embed_batch(texts)
        ]


def native_dimension_of(provider: EmbeddingProvider) -> int:
    return getattr(provider, "native_dimension", provider.dimension)


def fit_to_dimension(
    provider: EmbeddingProvider, target_dimension: int | None
) -> EmbeddingProvider:
    """Return a provider emitting vectors of exactly the target width."""
    if not target_dimension or target_dimension == provider.dimension:
        return provider
    if target_dimension < provider.dimension:
        raise EmbeddingConfigError(
            f"Cannot fit {provider.model_name} ({provider.dimension} dimensions) "
            f"into {target_dimension} dimensions"
        )
    logger.info(
        "embedding_padding_enabled",
        extra={
            "model": provider.model_name,
            "native_dimension": provider.dimension,
            "target_dimension": target_dimension,
        },
    )
    return PaddedEmbedder(inner=provider, target_dimension=target_dimension)


@dataclass(frozen=True)
class EmbeddingConfigReport:
    """Validation report for embedding configuration."""
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None
    target_dimension: int | None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None


def build_embedding_config_report(
    provider: str,
    model: str | None,
    dimension: int,
    target_dimension: int | None = None,
) -> EmbeddingConfigReport:
    """Build a validation report for embedding settings."""
    normalized = provider.lower().strip() or "hash"

    def report(
        ok: bool,
        status: str,
        expected: int | None,
        detail: str | None = None,
        action: str | None = None,
    ) -> EmbeddingConfigReport:
        return EmbeddingConfigReport(
            provider=normalized,
            model=model,
            configured_dimension=dimension,
            expected_dimension=expected,
            target_dimension=target_dimension,
            ok=ok,
            status=status,
            detail=detail,
            action=action,
        )

    if normalized == "hash":
        model = None
        expected = dimension if dimension > 0 else None
    elif normalized in {"openai", "ollama"}:
        env_name = "OPENAI_EMBEDDING_MODEL" if normalized == "openai" else "OLLAMA_EMBEDDING_MODEL"
        if not model:
            return report(
                False,
                "error",
                None,
                detail=f"{env_name} is required for {normalized} embeddings.",
                action=f"Set {env_name} in .env.",
            )
        if normalized == "openai":
            expected = resolve_openai_dimension(model)
        else:
            expected = resolve_ollama_dimension(model)
    else:
        return report(
            False,
            "error",
            None,
            detail="Unsupported embedding provider.",
            action="Set EMBEDDING_PROVIDER to hash, openai, or ollama.",
        )

    if dimension <= 0 and expected is None:
        return report(
            False,
            "error",
            None,
            detail="EMBEDDING_DIMENSION must be set for the configured model.",
            action="Set EMBEDDING_DIMENSION to a positive integer.",
        )
    effective = dimension if dimension > 0 else expected
    if expected is not None and dimension > 0 and dimension != expected:
        return report(
            False,
            "error",
            expected,
            detail="EMBEDDING_DIMENSION does not match the model dimension.",
            action=f"Set EMBEDDING_DIMENSION to {expected}.",
        )
    if target_dimension and effective and target_dimension < effective:
        return report(
            False,
            "error",
            expected,
            detail="TARGET_EMBEDDING_DIMENSION is smaller than the native embedding width.",
            action=f"Set TARGET_EMBEDDING_DIMENSION to at least {effective}.",
        )
    if expected is None:
        return report(
            True,
            "warning",
            None,
            detail="Model dimension cannot be auto-validated. Confirm EMBEDDING_DIMENSION manually.",
        )
    return report(True, "ok", expected)
