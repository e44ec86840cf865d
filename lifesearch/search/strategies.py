from __future__ import annotations

"""Retrieval strategies run by the parallel executor."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from lifesearch.loaders.chunking import PLACE_WORDS, extract_temporal_context
from lifesearch.search.embeddings import EmbeddingProvider
from lifesearch.search.errors import IndexUnavailable, StrategyCancelled
from lifesearch.search.index import IndexSnapshot
from lifesearch.search.keyword import FastKeywordMatcher, recency_key
from lifesearch.search.types import QueryClassification, StrategyName, StrategyResult
from lifesearch.vectorstore.inmemory import VectorSearcher

TEMPORAL_WORDS = frozenset(
    {
        "today", "yesterday", "tomorrow", "tonight", "morning", "afternoon", "evening",
        "night", "noon", "midnight", "week", "weekend", "month", "year", "last", "next",
        "ago", "days", "weeks", "months", "monday", "tuesday", "wednesday", "thursday",
        "friday", "saturday", "sunday", "recently", "earlier",
    }
)


@dataclass(frozen=True)
class SearchContext:
    """Inputs shared by every strategy in one fan-out."""
    query: str
    classification: QueryClassification
    snapshot: IndexSnapshot
    limit: int = 20
    cancel_event: threading.Event = field(default_factory=threading.Event)
    now: datetime | None = None

    def check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise StrategyCancelled("search cancelled")


class Strategy(Protocol):
    """A side-effect free retrieval strategy over one snapshot."""
    name: StrategyName

    def ensure_available(self, snapshot: IndexSnapshot) -> None:
        """Raise IndexUnavailable when the strategy cannot run on the snapshot."""
        raise NotImplementedError

    def run(self, context: SearchContext) -> list[StrategyResult]:
        raise NotImplementedError


def _rank(
    snapshot: IndexSnapshot, scores: dict[str, float], name: StrategyName, limit: int
) -> list[StrategyResult]:
    ranked = sorted(
        scores.items(), key=lambda item: (-item[1], -recency_key(snapshot, item[0]), item[0])
    )
    return [
        StrategyResult(doc_id=doc_id, score=min(1.0, max(0.0, score)), strategy=name)
        for doc_id, score in ranked[:limit]
    ]


@dataclass(frozen=True)
class KeywordStrategy:
    matcher: FastKeywordMatcher = field(default_factory=FastKeywordMatcher)
    name: StrategyName = StrategyName.FAST_KEYWORD

    def ensure_available(self, snapshot: IndexSnapshot) -> None:
        if not snapshot.documents:
            raise IndexUnavailable("Keyword index is empty")

    def run(self, context: SearchContext) -> list[StrategyResult]:
        return self.matcher.search(
            context.snapshot,
            context.query,
            max_results=context.limit,
            cancel_event=context.cancel_event,
        )


@dataclass(frozen=True)
class VectorStrategy:
    embedder: EmbeddingProvider
    searcher: VectorSearcher = field(default_factory=VectorSearcher)
    score_threshold: float = 0.3
    name: StrategyName = StrategyName.VECTOR_SEMANTIC

    def ensure_available(self, snapshot: IndexSnapshot) -> None:
        if not snapshot.has_vectors:
            raise IndexUnavailable("Vector index has not been built")

    def run(self, context: SearchContext) -> list[StrategyResult]:
        query_vector = self.embedder.embed(context.query)
        context.check_cancelled()
        return self.searcher.search(
            context.snapshot,
            query_vector,
            top_k=context.limit,
            score_threshold=self.score_threshold,
            query_model=self.embedder.model_name,
            cancel_event=context.cancel_event,
        )


@dataclass(frozen=True)
class ContextFilterStrategy:
    """Match query entities and temporal tags against chunk annotations."""
    name: StrategyName = StrategyName.CONTEXT_AWARE_FILTER

    def ensure_available(self, snapshot: IndexSnapshot) -> None:
        if not snapshot.documents:
            raise IndexUnavailable("No documents indexed")

    def run(self, context: SearchContext) -> list[StrategyResult]:
        classification = context.classification
        entities = set(classification.entities)
        entities.update(word for word in classification.keywords if word in PLACE_WORDS)
        temporal = set(extract_temporal_context(context.query))
        total = len(entities) + len(temporal)
        if total == 0:
            return []

        snapshot = context.snapshot
        scores: dict[str, float] = {}
        for chunk in snapshot.chunks.values():
            context.check_cancelled()
            matched = len(entities.intersection(chunk.entities))
            matched += len(temporal.intersection(chunk.temporal_context))
            if not matched:
                continue
            score = matched / total
            if score > scores.get(chunk.parent_id, 0.0):
                scores[chunk.parent_id] = score
        if not snapshot.chunks:
            for doc_id, document in snapshot.documents.items():
                context.check_cancelled()
                text = document.searchable_text.lower()
                matched = sum(1 for entity in entities if entity in text)
                matched += len(temporal.intersection(extract_temporal_context(text)))
                if matched:
                    scores[doc_id] = matched / total
        return _rank(snapshot, scores, self.name, context.limit)


@dataclass(frozen=True)
class DateRangeStrategy:
    """Return documents created inside the query's time range."""
    name: StrategyName = StrategyName.FAST_DATE

    def ensure_available(self, snapshot: IndexSnapshot) -> None:
        if not snapshot.documents:
            raise IndexUnavailable("No documents indexed")

    def run(self, context: SearchContext) -> list[StrategyResult]:
        time_range = context.classification.time_range
        if time_range is None:
            return []
        start, end = time_range
        keywords = [
            word for word in context.classification.keywords if word not in TEMPORAL_WORDS
        ]
        snapshot = context.snapshot
        scores: dict[str, float] = {}
        for doc_id, document in snapshot.documents.items():
            context.check_cancelled()
            if not (start <= document.created_at < end):
                continue
            if not keywords:
                scores[doc_id] = 1.0
                continue
            hits = sum(1 for word in keywords if doc_id in snapshot.postings.get(word, {}))
            if hits:
                scores[doc_id] = hits / len(keywords)
        return _rank(snapshot, scores, self.name, context.limit)


def build_strategies(
    embedder: EmbeddingProvider | None,
    vector_score_threshold: float = 0.3,
) -> dict[StrategyName, Strategy]:
    """Return one strategy instance per known strategy name."""
    strategies: dict[StrategyName, Strategy] = {
        StrategyName.FAST_KEYWORD: KeywordStrategy(),
        StrategyName.CONTEXT_AWARE_FILTER: ContextFilterStrategy(),
        StrategyName.FAST_DATE: DateRangeStrategy(),
    }
    if embedder is not None:
        strategies[StrategyName.VECTOR_SEMANTIC] = VectorStrategy(
            embedder=embedder, score_threshold=vector_score_threshold
        )
    return strategies
