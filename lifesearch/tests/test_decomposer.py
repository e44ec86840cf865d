from __future__ import annotations

import pytest

from lifesearch.agents.decomposer import QueryDecomposer
from lifesearch.agents.router import QueryRouter


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        (
            "what was the budget decision and where did we meet",
            ("what was the budget decision", "where did we meet"),
        ),
        ("budget? dentist?", ("budget?", "dentist?")),
        ("lemon cake; quarterly budget", ("lemon cake", "quarterly budget")),
        ("dentist AND budget", ("dentist", "budget")),
        ("lemon cake", ("lemon cake",)),
    ],
)
def test_decompose_splits_on_multi_part_separators(query: str, expected: tuple[str, ...]) -> None:
    assert QueryDecomposer().decompose(query) == expected


def test_shared_temporal_phrase_carries_to_other_parts() -> None:
    parts = QueryDecomposer().decompose("what did I eat yesterday and where did we go")

    assert parts == ("what did I eat yesterday", "where did we go yesterday")


def test_empty_and_duplicate_parts_are_dropped() -> None:
    assert QueryDecomposer().decompose("budget; ; Budget") == ("budget; ; Budget",)
    assert QueryDecomposer().decompose("budget;; the;dentist") == ("budget", "dentist")


def test_parts_are_capped() -> None:
    parts = QueryDecomposer(max_parts=2).decompose("cake; budget; dentist")

    assert parts == ("cake", "budget")


def test_router_multi_part_queries_decompose() -> None:
    router = QueryRouter()
    decomposer = QueryDecomposer()
    for query in (
        "what happened yesterday and what about the budget",
        "dentist? budget?",
        "cake as well as budget",
    ):
        assert router.classify(query).is_multi_part
        assert len(decomposer.decompose(query)) > 1
