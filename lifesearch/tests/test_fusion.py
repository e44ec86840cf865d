from __future__ import annotations

from datetime import datetime, timezone

import pytest

from lifesearch.search.errors import ConfigurationError
from lifesearch.search.fusion import (
    MAX_CONFIDENCE,
    ConsensusFuser,
    StrategyWeights,
    agreement_bonus,
    reciprocal_rank_fusion,
)
from lifesearch.search.types import Document, StrategyName, StrategyOutcome, StrategyResult

KW = StrategyName.FAST_KEYWORD
VEC = StrategyName.VECTOR_SEMANTIC
FILTER = StrategyName.CONTEXT_AWARE_FILTER
DATE = StrategyName.FAST_DATE


def _results(name: StrategyName, *pairs: tuple[str, float]) -> list[StrategyResult]:
    return [StrategyResult(doc_id, score, name) for doc_id, score in pairs]


def test_agreement_raises_score_and_is_capped() -> None:
    fuser = ConsensusFuser()

    fused = fuser.fuse(
        {
            KW: _results(KW, ("both", 0.5), ("solo", 0.5)),
            VEC: _results(VEC, ("both", 0.5)),
        }
    )
    by_id = {item.doc_id: item for item in fused}

    assert by_id["both"].consensus_score == pytest.approx(0.55)
    assert by_id["solo"].consensus_score == pytest.approx(0.5)
    assert [item.doc_id for item in fused] == ["both", "solo"]
    assert agreement_bonus(1) == 0.0
    assert agreement_bonus(4) == pytest.approx(0.15)
    assert agreement_bonus(10) == pytest.approx(0.15)


def test_scores_stay_in_unit_interval() -> None:
    fused = ConsensusFuser().fuse(
        {
            KW: _results(KW, ("doc", 1.0)),
            VEC: _results(VEC, ("doc", 1.0)),
            FILTER: _results(FILTER, ("doc", 1.0)),
            DATE: _results(DATE, ("doc", 1.0)),
        }
    )

    assert fused[0].consensus_score == 1.0
    assert fused[0].confidence_contribution == pytest.approx(1.0)


def test_filter_only_match_ranks_below_keyword_match() -> None:
    fused = ConsensusFuser().fuse(
        {
            KW: _results(KW, ("keyword-hit", 0.4)),
            FILTER: _results(FILTER, ("filter-hit", 1.0)),
        }
    )

    assert [item.doc_id for item in fused] == ["keyword-hit", "filter-hit"]
    assert fused[1].consensus_score == pytest.approx(0.25)
    assert not fused[1].has_direct_evidence


def test_failed_outcomes_are_skipped_and_duplicates_collapse() -> None:
    outputs = {
        KW: StrategyOutcome(
            strategy=KW,
            status="completed",
            results=tuple(_results(KW, ("doc", 0.3), ("doc", 0.7))),
        ),
        VEC: StrategyOutcome(strategy=VEC, status="timeout", error="slow"),
    }

    fused = ConsensusFuser().fuse(outputs)

    assert len(fused) == 1
    assert fused[0].strategies == (KW,)
    assert fused[0].scores == (0.7,)


def test_fusion_is_deterministic_and_breaks_ties_by_recency() -> None:
    documents = {
        "old": Document("old", "a", datetime(2024, 1, 1, tzinfo=timezone.utc)),
        "new": Document("new", "a", datetime(2024, 2, 1, tzinfo=timezone.utc)),
    }
    outputs = {KW: _results(KW, ("old", 0.5), ("new", 0.5))}
    fuser = ConsensusFuser()

    first = fuser.fuse(outputs, documents=documents)
    second = fuser.fuse(outputs, documents=documents)

    assert first == second
    assert [item.doc_id for item in first] == ["new", "old"]
    assert sum(item.confidence_contribution for item in first) == pytest.approx(1.0)


def test_empty_inputs_fuse_to_nothing() -> None:
    fuser = ConsensusFuser()

    assert fuser.fuse({}) == []
    assert fuser.fuse({KW: []}) == []
    assert fuser.confidence([], "anything") == 0.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"fast-keyword": 0.1, "context-aware-filter": 0.2},
        {"vector-semantic": -0.1},
        {"vector-semantic": float("nan")},
        {"not-a-strategy": 0.5},
        {
            "fast-keyword": 0.0,
            "vector-semantic": 0.0,
            "context-aware-filter": 0.0,
            "fast-date": 0.0,
        },
    ],
)
def test_invalid_weights_are_rejected(overrides) -> None:
    with pytest.raises(ConfigurationError):
        StrategyWeights.from_mapping(overrides)


def test_weight_overrides_merge_with_defaults() -> None:
    weights = StrategyWeights.from_mapping({"vector-semantic": 0.5})

    assert weights.get(VEC) == 0.5
    assert weights.get(KW) == 0.6
    assert weights.max_weight == 0.6


def test_confidence_is_capped() -> None:
    documents = {
        "doc": Document("doc", "lemon cake at grandma's", datetime(2024, 1, 1, tzinfo=timezone.utc))
    }
    fuser = ConsensusFuser()
    fused = fuser.fuse(
        {KW: _results(KW, ("doc", 1.0)), VEC: _results(VEC, ("doc", 1.0))},
        documents=documents,
    )

    confidence = fuser.confidence(fused, "lemon cake", documents)

    assert confidence == MAX_CONFIDENCE


def test_confidence_without_agreement_uses_top_score_and_coverage() -> None:
    documents = {
        "doc": Document("doc", "lemon tart", datetime(2024, 1, 1, tzinfo=timezone.utc))
    }
    fuser = ConsensusFuser()
    fused = fuser.fuse({KW: _results(KW, ("doc", 0.5))}, documents=documents)

    confidence = fuser.confidence(fused, "lemon cake", documents)

    assert confidence == pytest.approx(0.6 * 0.5 + 0.2 * 0.5)


def test_reciprocal_rank_fusion_orders_by_summed_ranks() -> None:
    ranked = reciprocal_rank_fusion(
        {
            KW: _results(KW, ("a", 0.9), ("b", 0.5)),
            VEC: _results(VEC, ("b", 0.8)),
        }
    )

    assert [doc_id for doc_id, _ in ranked] == ["b", "a"]


def test_merge_keeps_best_result_per_document() -> None:
    fuser = ConsensusFuser()
    cake = fuser.fuse({KW: _results(KW, ("mimi", 0.4), ("shared", 0.3))})
    budget = fuser.fuse({KW: _results(KW, ("budget", 0.6), ("shared", 0.5))})

    merged = fuser.merge([cake, budget])
    by_id = {item.doc_id: item for item in merged}

    assert [item.doc_id for item in merged] == ["budget", "shared", "mimi"]
    assert by_id["shared"].consensus_score == pytest.approx(0.5)
    assert sum(item.confidence_contribution for item in merged) == pytest.approx(1.0)
    assert fuser.merge([]) == []
