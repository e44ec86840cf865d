from __future__ import annotations

import math

import httpx
import pytest

from lifesearch.search.embeddings import (
    EmbeddingConfigError,
    EmbeddingError,
    HashEmbedder,
    OllamaEmbedder,
    PaddedEmbedder,
    build_embedding_config_report,
    fit_to_dimension,
    validate_vector,
)
from lifesearch.search.errors import ConfigurationError


def test_hash_embedder_is_deterministic_and_normalized() -> None:
    embedder = HashEmbedder(dimension=64)

    first = embedder.embed("kids at Mimi's house")
    second = embedder.embed("kids at Mimi's house")

    assert first == second
    assert len(first) == 64
    assert math.isclose(math.sqrt(sum(value * value for value in first)), 1.0)
    assert embedder.model_name == "hash-64"


def test_padding_appends_zeros_and_tags_model() -> None:
    padded = PaddedEmbedder(HashEmbedder(dimension=16), target_dimension=24)

    vector = padded.embed("lemon cake")

    assert len(vector) == 24
    assert vector[:16] == HashEmbedder(dimension=16).embed("lemon cake")
    assert vector[16:] == [0.0] * 8
    assert padded.native_dimension == 16
    assert padded.model_name == "hash-16-padded-to-24"
    assert padded.embed_batch(["lemon cake"]) == [vector]


def test_padding_rejects_narrower_target() -> None:
    with pytest.raises(EmbeddingConfigError):
        PaddedEmbedder(HashEmbedder(dimension=32), target_dimension=16)
    with pytest.raises(ConfigurationError):
        fit_to_dimension(HashEmbedder(dimension=32), 16)


def test_fit_to_dimension_only_wraps_when_needed() -> None:
    embedder = HashEmbedder(dimension=32)

    assert fit_to_dimension(embedder, 32) is embedder
    assert fit_to_dimension(embedder, None) is embedder
    assert isinstance(fit_to_dimension(embedder, 768), PaddedEmbedder)


def test_validate_vector_rejects_bad_values() -> None:
    with pytest.raises(EmbeddingError):
        validate_vector([1.0, 2.0], 3)
    with pytest.raises(EmbeddingError):
        validate_vector([1.0, float("nan")], 2)


def test_ollama_embedder_posts_batch(monkeypatch) -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        return httpx.Response(200, json={"embeddings": [[0.1, 0.2, 0.3], [0.3, 0.2, 0.1]]})

    transport = httpx.MockTransport(handler)
    original_client = httpx.Client

    def client_factory(*args, **kwargs):
        kwargs["transport"] = transport
        return original_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "Client", client_factory)
    embedder = OllamaEmbedder(base_url="http://ollama:11434/", model="tiny", dimension=3)

    vectors = embedder.embed_batch(["one", "two"])

    assert captured["url"] == "http://ollama:11434/api/embed"
    assert vectors == [[0.1, 0.2, 0.3], [0.3, 0.2, 0.1]]
    assert embedder.model_name == "ollama:tiny"


def test_embedding_config_report_flags_target_below_native() -> None:
    ok = build_embedding_config_report("hash", None, 256, 768)
    bad = build_embedding_config_report("openai", "text-embedding-3-small", 1536, 768)
    unknown = build_embedding_config_report("ollama", "custom-model", 512, None)

    assert ok.ok and ok.status == "ok"
    assert not bad.ok and "TARGET_EMBEDDING_DIMENSION" in (bad.detail or "")
    assert unknown.ok and unknown.status == "warning"
