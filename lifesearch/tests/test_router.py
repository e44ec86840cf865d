from __future__ import annotations

from datetime import datetime, timezone

import pytest

from lifesearch.agents.router import QueryRouter, extract_time_range
from lifesearch.search.types import QueryType, StrategyName

NOW = datetime(2024, 6, 14, 18, 0, tzinfo=timezone.utc)  # a Friday


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("where is Mimi's house", QueryType.SIMPLE_LOOKUP),
        ("lemon cake", QueryType.KEYWORD),
        ("what did the hygienist recommend about flossing", QueryType.SEMANTIC),
        ("what did I do yesterday", QueryType.TEMPORAL),
        ("where did the kids go this afternoon?", QueryType.TEMPORAL),
        ("what was the budget decision and where did we meet", QueryType.MULTI_PART),
        ("budget? dentist?", QueryType.MULTI_PART),
    ],
)
def test_classify_query_types(query: str, expected: QueryType) -> None:
    router = QueryRouter(known_entities=("mimi",))

    classification = router.classify(query, now=NOW)

    assert classification.query_type == expected


def test_lookup_requires_known_entity() -> None:
    router = QueryRouter()

    without = router.classify("where is the lemon cake recipe", now=NOW)
    with_entity = router.classify(
        "where is the lemon cake recipe", known_entities=["lemon cake"], now=NOW
    )

    assert without.query_type == QueryType.SEMANTIC
    assert with_entity.query_type == QueryType.SIMPLE_LOOKUP
    assert with_entity.entities == ("lemon cake",)


def test_strategy_selection_by_type() -> None:
    router = QueryRouter(known_entities=("mimi",))

    lookup = router.select_strategies(router.classify("where is Mimi", now=NOW))
    keyword = router.select_strategies(router.classify("lemon cake", now=NOW))
    temporal = router.select_strategies(router.classify("what happened yesterday", now=NOW))
    multi = router.select_strategies(router.classify("budget; dentist", now=NOW))

    assert list(lookup) == [StrategyName.FAST_KEYWORD, StrategyName.CONTEXT_AWARE_FILTER]
    assert list(keyword) == [StrategyName.FAST_KEYWORD]
    assert StrategyName.VECTOR_SEMANTIC not in lookup
    assert set(temporal) == set(StrategyName)
    assert set(multi) == set(StrategyName)
    assert lookup[StrategyName.FAST_KEYWORD] == 0.6
    assert lookup[StrategyName.CONTEXT_AWARE_FILTER] == 0.15


def test_temporal_without_time_range_skips_date_strategy() -> None:
    router = QueryRouter()
    classification = router.classify("what did we talk about in the evening", now=NOW)

    selected = router.select_strategies(classification)

    assert classification.time_range is None
    assert StrategyName.FAST_DATE not in selected
    assert StrategyName.VECTOR_SEMANTIC in selected


def test_extract_time_range_relative_phrases() -> None:
    yesterday = extract_time_range("yesterday", NOW)
    last_week = extract_time_range("notes from last week", NOW)
    iso = extract_time_range("on 2024-06-10", NOW)
    ago = extract_time_range("three days ago", NOW)

    assert yesterday == (
        datetime(2024, 6, 13, tzinfo=timezone.utc),
        datetime(2024, 6, 14, tzinfo=timezone.utc),
    )
    assert last_week == (
        datetime(2024, 6, 3, tzinfo=timezone.utc),
        datetime(2024, 6, 10, tzinfo=timezone.utc),
    )
    assert iso[0] == datetime(2024, 6, 10, tzinfo=timezone.utc)
    assert ago[0] == datetime(2024, 6, 11, tzinfo=timezone.utc)
    assert extract_time_range("lemon cake", NOW) is None
