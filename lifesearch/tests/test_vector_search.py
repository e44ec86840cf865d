from __future__ import annotations

from dataclasses import replace

from lifesearch.search.embeddings import HashEmbedder
from lifesearch.search.index import IndexBuilder
from lifesearch.search.types import StrategyName
from lifesearch.vectorstore.inmemory import VectorSearcher


def test_vector_search_resolves_chunks_to_parents(lifelogs) -> None:
    embedder = HashEmbedder(dimension=128)
    snapshot = IndexBuilder(embedder=embedder).build(lifelogs, generation=1)

    results = VectorSearcher().search(
        snapshot,
        embedder.embed("lemon cake at Mimi's house"),
        top_k=5,
        query_model=embedder.model_name,
    )

    assert results[0].doc_id == "mimi-visit"
    assert len({result.doc_id for result in results}) == len(results)
    assert all(0.0 < result.score <= 1.0 for result in results)
    assert all(result.strategy == StrategyName.VECTOR_SEMANTIC for result in results)


def test_threshold_filters_weak_matches(lifelogs) -> None:
    embedder = HashEmbedder(dimension=128)
    snapshot = IndexBuilder(embedder=embedder).build(lifelogs, generation=1)

    results = VectorSearcher().search(
        snapshot, embedder.embed("lemon cake"), score_threshold=0.99
    )

    assert results == []


def test_dimension_mismatch_returns_empty(lifelogs) -> None:
    snapshot = IndexBuilder(embedder=HashEmbedder(dimension=128)).build(lifelogs, generation=1)

    results = VectorSearcher().search(snapshot, HashEmbedder(dimension=64).embed("lemon cake"))

    assert results == []


def test_model_mismatch_returns_empty(lifelogs) -> None:
    embedder = HashEmbedder(dimension=128)
    snapshot = IndexBuilder(embedder=embedder).build(lifelogs, generation=1)
    foreign = replace(snapshot, embedding_model="openai:text-embedding-3-small")

    results = VectorSearcher().search(
        foreign, embedder.embed("lemon cake"), query_model=embedder.model_name
    )

    assert results == []


def test_missing_index_returns_empty(lifelogs) -> None:
    snapshot = IndexBuilder(chunking_enabled=False).build(lifelogs, generation=1)

    assert VectorSearcher().search(None, [1.0, 0.0]) == []
    assert VectorSearcher().search(snapshot, [1.0, 0.0]) == []
