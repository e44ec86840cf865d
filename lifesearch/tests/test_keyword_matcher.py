from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from lifesearch.search.errors import StrategyCancelled
from lifesearch.search.index import IndexBuilder
from lifesearch.search.keyword import FastKeywordMatcher
from lifesearch.search.types import Document, StrategyName


def _doc(doc_id: str, content: str, day: int) -> Document:
    return Document(
        doc_id=doc_id,
        content=content,
        created_at=datetime(2024, 5, day, tzinfo=timezone.utc),
    )


def _snapshot(documents: list[Document]):
    return IndexBuilder(chunking_enabled=False).build(documents, generation=1)


def test_phrase_adjacency_outranks_scattered_terms() -> None:
    snapshot = _snapshot(
        [
            _doc("phrase", "We ate lemon cake after dinner.", 1),
            _doc("scattered", "The cake was fine but the lemon was sour.", 2),
        ]
    )

    results = FastKeywordMatcher().search(snapshot, "lemon cake")

    assert [result.doc_id for result in results] == ["phrase", "scattered"]
    assert results[0].score > results[1].score
    assert all(0.0 <= result.score <= 1.0 for result in results)
    assert all(result.strategy == StrategyName.FAST_KEYWORD for result in results)


def test_ties_prefer_newer_documents() -> None:
    snapshot = _snapshot(
        [
            _doc("older", "Budget meeting notes.", 1),
            _doc("newer", "Budget meeting notes.", 9),
        ]
    )

    results = FastKeywordMatcher().search(snapshot, "budget")

    assert [result.doc_id for result in results] == ["newer", "older"]
    assert results[0].score == results[1].score


def test_no_match_and_stopword_queries_return_empty() -> None:
    snapshot = _snapshot([_doc("one", "Walked the dog in the park.", 1)])

    assert FastKeywordMatcher().search(snapshot, "zebra quantum") == []
    assert FastKeywordMatcher().search(snapshot, "the of and") == []


def test_scores_are_clamped_with_many_phrase_pairs() -> None:
    text = "red blue green yellow purple orange " * 5
    snapshot = _snapshot([_doc("colors", text, 1)])

    results = FastKeywordMatcher().search(snapshot, "red blue green yellow purple orange")

    assert results[0].score == 1.0


def test_cancelled_search_stops() -> None:
    snapshot = _snapshot([_doc("one", "Walked the dog in the park.", 1)])
    event = threading.Event()
    event.set()

    with pytest.raises(StrategyCancelled):
        FastKeywordMatcher().search(snapshot, "dog", cancel_event=event)
