from __future__ import annotations

"""Core data types for lifelog documents, strategies and fused results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from lifesearch.search.errors import StrategyExecutionError, StrategyTimeout


class StrategyFamily(str, Enum):
    """Kind of evidence a strategy contributes to consensus."""
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    FILTER = "filter"


class StrategyName(str, Enum):
    """Closed set of retrieval strategies known to the engine."""
    FAST_KEYWORD = "fast-keyword"
    VECTOR_SEMANTIC = "vector-semantic"
    CONTEXT_AWARE_FILTER = "context-aware-filter"
    FAST_DATE = "fast-date"

    @property
    def family(self) -> StrategyFamily:
        return STRATEGY_FAMILIES[self]

    @property
    def default_weight(self) -> float:
        return DEFAULT_STRATEGY_WEIGHTS[self]

    @property
    def is_direct(self) -> bool:
        """Direct evidence comes from the query text, not from a filter."""
        return self.family in {StrategyFamily.KEYWORD, StrategyFamily.SEMANTIC}


STRATEGY_FAMILIES: dict[StrategyName, StrategyFamily] = {
    StrategyName.FAST_KEYWORD: StrategyFamily.KEYWORD,
    StrategyName.VECTOR_SEMANTIC: StrategyFamily.SEMANTIC,
    StrategyName.CONTEXT_AWARE_FILTER: StrategyFamily.FILTER,
    StrategyName.FAST_DATE: StrategyFamily.FILTER,
}

DEFAULT_STRATEGY_WEIGHTS: dict[StrategyName, float] = {
    StrategyName.FAST_KEYWORD: 0.6,
    StrategyName.VECTOR_SEMANTIC: 0.4,
    StrategyName.FAST_DATE: 0.25,
    StrategyName.CONTEXT_AWARE_FILTER: 0.15,
}


class QueryType(str, Enum):
    SIMPLE_LOOKUP = "simple_lookup"
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    TEMPORAL = "temporal"
    MULTI_PART = "multi_part"


@dataclass(frozen=True)
class Document:
    """A lifelog transcript as provided by the document source."""
    doc_id: str
    content: str
    created_at: datetime
    title: str = ""
    duration: float = 0.0
    headings: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def searchable_text(self) -> str:
        parts = [self.title, *self.headings, self.content]
        return "\n".join(part for part in parts if part)


@dataclass(frozen=True)
class Chunk:
    """Sentence window derived from a document."""
    chunk_id: str
    parent_id: str
    position: int
    content: str
    temporal_context: tuple[str, ...] = ()
    entities: tuple[str, ...] = ()


@dataclass(frozen=True)
class EmbeddingVector:
    """Stored embedding with the backend that produced it."""
    values: tuple[float, ...]
    native_dimension: int
    model: str

    @property
    def dimension(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class StrategyResult:
    """One document hit emitted by one strategy."""
    doc_id: str
    score: float
    strategy: StrategyName


@dataclass(frozen=True)
class ConsensusResult:
    """Fused result for one document across strategies."""
    doc_id: str
    strategies: tuple[StrategyName, ...]
    scores: tuple[float, ...]
    consensus_score: float
    confidence_contribution: float
    created_at: datetime | None = None

    @property
    def has_direct_evidence(self) -> bool:
        return any(strategy.is_direct for strategy in self.strategies)

    def to_dict(self) -> dict[str, Any]:
        return {
            "docId": self.doc_id,
            "strategies": [strategy.value for strategy in self.strategies],
            "scores": list(self.scores),
            "consensusScore": self.consensus_score,
            "confidenceContribution": self.confidence_contribution,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class QueryClassification:
    """Routing flags and extracted features for a query."""
    query_type: QueryType
    has_temporal_reference: bool = False
    has_named_entity: bool = False
    is_multi_part: bool = False
    keywords: tuple[str, ...] = ()
    temporal_terms: tuple[str, ...] = ()
    entities: tuple[str, ...] = ()
    time_range: tuple[datetime, datetime] | None = None


@dataclass(frozen=True)
class StrategyOutcome:
    """Terminal state of one strategy in one fan-out."""
    strategy: StrategyName
    status: str
    results: tuple[StrategyResult, ...] = ()
    error: str | None = None
    elapsed: float = 0.0

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    def raise_for_status(self) -> None:
        """Raise the matching strategy error when the strategy did not complete."""
        if self.status == "timeout":
            raise StrategyTimeout(self.error or f"{self.strategy.value} timed out")
        if self.status != "completed":
            raise StrategyExecutionError(self.error or f"{self.strategy.value} failed")


@dataclass(frozen=True)
class SearchPass:
    """Outcome of one Router -> Executor -> Fuser pass."""
    query: str
    classification: QueryClassification
    outcomes: dict[StrategyName, StrategyOutcome]
    results: tuple[ConsensusResult, ...]
    confidence: float
    index_generation: int = 0


@dataclass
class IterationState:
    """Mutable state of one iterative search call."""
    query: str
    iteration: int = 0
    results: tuple[ConsensusResult, ...] = ()
    confidence: float = 0.0
    best_pass: SearchPass | None = None

    @property
    def best_results(self) -> tuple[ConsensusResult, ...]:
        return self.best_pass.results if self.best_pass is not None else ()

    @property
    def best_confidence(self) -> float:
        return self.best_pass.confidence if self.best_pass is not None else 0.0

    def consider(self, search_pass: SearchPass) -> None:
        """Record a pass and keep it if it beats the best seen so far."""
        self.results = search_pass.results
        self.confidence = search_pass.confidence
        if self.best_pass is None or search_pass.confidence > self.best_pass.confidence:
            self.best_pass = search_pass


@dataclass(frozen=True)
class SearchBundle:
    """Final answer of a search call handed to the consumer."""
    query: str
    final_query: str
    results: tuple[ConsensusResult, ...]
    confidence: float
    iterations: int
    state: str
    outcomes: dict[StrategyName, StrategyOutcome] = field(default_factory=dict)
    index_generation: int = 0

    @property
    def result_count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "finalQuery": self.final_query,
            "results": [result.to_dict() for result in self.results],
            "confidence": self.confidence,
            "iterations": self.iterations,
            "resultCount": self.result_count,
            "state": self.state,
            "indexGeneration": self.index_generation,
            "strategies": {
                name.value: {
                    "status": outcome.status,
                    "resultCount": len(outcome.results),
                    "error": outcome.error,
                    "elapsed": round(outcome.elapsed, 4),
                }
                for name, outcome in self.outcomes.items()
            },
        }
