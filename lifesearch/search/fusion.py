from __future__ import annotations

"""Strategy-weighted consensus fusion and confidence scoring."""

import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from lifesearch.search.errors import ConfigurationError
from lifesearch.search.tokenization import significant_terms, token_texts
from lifesearch.search.types import (
    DEFAULT_STRATEGY_WEIGHTS,
    ConsensusResult,
    Document,
    StrategyFamily,
    StrategyName,
    StrategyOutcome,
    StrategyResult,
)

MAX_CONFIDENCE = 0.95


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def parse_strategy_name(raw: str | StrategyName) -> StrategyName:
    if isinstance(raw, StrategyName):
        return raw
    try:
        return StrategyName(raw.strip().lower())
    except ValueError as exc:
        raise ConfigurationError(f"Unknown strategy name: {raw}") from exc


@dataclass(frozen=True)
class StrategyWeights:
    """Validated fusion weights keyed by strategy."""
    values: Mapping[StrategyName, float] = field(
        default_factory=lambda: dict(DEFAULT_STRATEGY_WEIGHTS)
    )

    def __post_init__(self) -> None:
        for name, weight in self.values.items():
            if not isinstance(name, StrategyName):
                raise ConfigurationError(f"Unknown strategy name: {name}")
            if not isinstance(weight, (int, float)) or not math.isfinite(weight):
                raise ConfigurationError(f"Weight for {name.value} must be a finite number")
            if weight < 0:
                raise ConfigurationError(f"Weight for {name.value} must not be negative")
        if not any(weight > 0 for weight in self.values.values()):
            raise ConfigurationError("At least one strategy weight must be positive")
        keyword = self.get(StrategyName.FAST_KEYWORD)
        context_filter = self.get(StrategyName.CONTEXT_AWARE_FILTER)
        if keyword <= context_filter:
            raise ConfigurationError(
                "fast-keyword weight must be greater than the context-aware-filter weight"
            )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str | StrategyName, float]) -> "StrategyWeights":
        """Merge overrides onto the default table and validate the result."""
        values: dict[StrategyName, float] = dict(DEFAULT_STRATEGY_WEIGHTS)
        for raw_name, weight in mapping.items():
            values[parse_strategy_name(raw_name)] = weight
        return cls(values=values)

    def get(self, name: StrategyName) -> float:
        return float(self.values.get(name, 0.0))

    @property
    def max_weight(self) -> float:
        return max(self.values.values())

    def as_dict(self) -> dict[StrategyName, float]:
        return dict(self.values)


def agreement_bonus(strategy_count: int) -> float:
    """Bonus for corroboration: 0.05 per extra strategy, at most 0.15."""
    return min(0.05 * max(0, strategy_count - 1), 0.15)


@dataclass(frozen=True)
class ConsensusFuser:
    """Combine strategy outputs into one ranked list per document."""
    weights: StrategyWeights = field(default_factory=StrategyWeights)

    def fuse(
        self,
        outputs: Mapping[StrategyName, StrategyOutcome | Iterable[StrategyResult]],
        weights: Mapping[StrategyName, float] | None = None,
        documents: Mapping[str, Document] | None = None,
    ) -> list[ConsensusResult]:
        """Fuse completed strategy outputs into ranked consensus results.

        Timed-out or failed outcomes are skipped. A strategy reporting the same
        document twice contributes its best score once.
        """
        table = StrategyWeights(values=weights) if weights is not None else self.weights
        max_weight = table.max_weight

        grouped: dict[str, dict[StrategyName, float]] = {}
        for name, output in outputs.items():
            if isinstance(output, StrategyOutcome):
                if not output.completed:
                    continue
                results: Iterable[StrategyResult] = output.results
            else:
                results = output
            for result in results:
                if not math.isfinite(result.score):
                    continue
                scores = grouped.setdefault(result.doc_id, {})
                score = _clamp01(result.score)
                if score > scores.get(name, -1.0):
                    scores[name] = score

        fused: list[ConsensusResult] = []
        for doc_id, scores in grouped.items():
            names = sorted(scores, key=lambda item: (-table.get(item), item.value))
            contributing = [name for name in names if table.get(name) > 0]
            if not contributing:
                continue
            weight_sum = sum(table.get(name) for name in contributing)
            mean = sum(table.get(name) * scores[name] for name in contributing) / weight_sum
            if any(name.is_direct for name in contributing):
                consensus = _clamp01(mean + agreement_bonus(len(contributing)))
            else:
                # filter-only evidence never outscores the same raw score with direct evidence
                consensus = _clamp01(mean * min(1.0, weight_sum / max_weight))
            document = documents.get(doc_id) if documents is not None else None
            fused.append(
                ConsensusResult(
                    doc_id=doc_id,
                    strategies=tuple(contributing),
                    scores=tuple(scores[name] for name in contributing),
                    consensus_score=consensus,
                    confidence_contribution=0.0,
                    created_at=document.created_at if document is not None else None,
                )
            )

        return self._rank(fused)

    def merge(self, result_lists: Iterable[Iterable[ConsensusResult]]) -> list[ConsensusResult]:
        """Merge fused lists from sub-queries, keeping each document's best result."""
        best: dict[str, ConsensusResult] = {}
        for results in result_lists:
            for item in results:
                current = best.get(item.doc_id)
                if current is None or item.consensus_score > current.consensus_score:
                    best[item.doc_id] = item
        return self._rank(list(best.values()))

    def _rank(self, fused: list[ConsensusResult]) -> list[ConsensusResult]:
        fused.sort(
            key=lambda item: (
                -item.consensus_score,
                not item.has_direct_evidence,
                -len(item.strategies),
                -(item.created_at.timestamp() if item.created_at else 0.0),
                item.doc_id,
            )
        )
        total = sum(item.consensus_score for item in fused)
        if total <= 0:
            return fused
        return [
            ConsensusResult(
                doc_id=item.doc_id,
                strategies=item.strategies,
                scores=item.scores,
                consensus_score=item.consensus_score,
                confidence_contribution=item.consensus_score / total,
                created_at=item.created_at,
            )
            for item in fused
        ]

    def confidence(
        self,
        results: list[ConsensusResult],
        query: str,
        documents: Mapping[str, Document] | None = None,
    ) -> float:
        """Score how well the top result answers the query, in [0, 0.95]."""
        if not results:
            return 0.0
        top = results[0]
        score = 0.6 * top.consensus_score

        terms = significant_terms(query)
        document = documents.get(top.doc_id) if documents is not None else None
        if terms and document is not None:
            present = set(token_texts(document.searchable_text))
            score += 0.2 * (sum(1 for term in terms if term in present) / len(terms))

        families = {name.family for name in top.strategies}
        if StrategyFamily.KEYWORD in families and StrategyFamily.SEMANTIC in families:
            score += 0.15
        return min(MAX_CONFIDENCE, _clamp01(score))


def reciprocal_rank_fusion(
    outputs: Mapping[StrategyName, Iterable[StrategyResult]], k: int = 60
) -> list[tuple[str, float]]:
    """Equal-weight reciprocal rank fusion, for diagnostics only."""
    scores: dict[str, float] = {}
    for results in outputs.values():
        ranked = sorted(results, key=lambda item: (-item.score, item.doc_id))
        for rank, result in enumerate(ranked, start=1):
            scores[result.doc_id] = scores.get(result.doc_id, 0.0) + 1.0 / (k + rank)
    return sorted(scores.items(), key=lambda item: (-item[1], item[0]))
