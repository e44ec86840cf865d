from __future__ import annotations

"""Search engine facade wiring router, executor, fuser and controller."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from lifesearch.agents.decomposer import QueryDecomposer
from lifesearch.agents.router import QueryRouter
from lifesearch.loaders.lifelogs import DocumentSource
from lifesearch.search.config import SearchConfig
from lifesearch.search.embeddings import EmbeddingProvider, fit_to_dimension
from lifesearch.search.errors import IndexUnavailable
from lifesearch.search.executor import ParallelSearchExecutor, merge_outcomes
from lifesearch.search.fusion import ConsensusFuser
from lifesearch.search.index import IndexBuilder, IndexSnapshot, SearchIndex
from lifesearch.search.iterative import IterativeController
from lifesearch.search.metrics import INDEX_DOCUMENTS
from lifesearch.search.rewriter import QueryRewriter, build_rewriter
from lifesearch.search.strategies import SearchContext, Strategy, build_strategies
from lifesearch.search.types import (
    ConsensusResult,
    Document,
    QueryClassification,
    SearchBundle,
    SearchPass,
    StrategyName,
    StrategyOutcome,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SearchEngine:
    config: SearchConfig = field(default_factory=SearchConfig)
    embedder: EmbeddingProvider | None = None
    index: SearchIndex = field(default_factory=SearchIndex)
    executor: ParallelSearchExecutor = field(default_factory=ParallelSearchExecutor)
    strategies: dict[StrategyName, Strategy] | None = None
    rewriter: QueryRewriter | None = None
    decomposer: QueryDecomposer = field(default_factory=QueryDecomposer)
    clock: Callable[[], datetime] = utc_now

    def __post_init__(self) -> None:
        if self.embedder is not None:
            self.embedder = fit_to_dimension(self.embedder, self.config.target_embedding_dimension)
        if self.strategies is None:
            self.strategies = build_strategies(self.embedder, self.config.vector_score_threshold)
        if self.rewriter is None:
            self.rewriter = build_rewriter(self.config.rewriter, self.config.entity_aliases)
        self.router = QueryRouter(
            known_entities=self.config.known_entities,
            weights=self.config.strategy_weights.as_dict(),
        )
        self.fuser = ConsensusFuser(weights=self.config.strategy_weights)
        self._build_lock = threading.Lock()

    def build_index(self, documents: Iterable[Document]) -> IndexSnapshot:
        """Build a snapshot from documents and publish it.

        Builds are serialized, so the last call to start is the last to publish.
        """
        with self._build_lock:
            return self._build_and_publish(documents)

    def rebuild_from(self, source: DocumentSource) -> IndexSnapshot:
        """Rebuild from the source's contents as they are once this build runs."""
        with self._build_lock:
            return self._build_and_publish(source.list_all())

    def _build_and_publish(self, documents: Iterable[Document]) -> IndexSnapshot:
        builder = IndexBuilder(
            embedder=self.embedder,
            chunking_enabled=self.config.chunking_enabled,
            sentences_per_chunk=self.config.sentences_per_chunk,
            chunk_overlap=self.config.chunk_overlap,
            known_entities=self.config.known_entities,
        )
        snapshot = builder.build(documents, generation=self.index.next_generation())
        INDEX_DOCUMENTS.observe(len(snapshot.documents))
        return self.index.publish(snapshot)

    def search_once(self, query: str, snapshot: IndexSnapshot | None = None) -> SearchPass:
        """Run one Router -> Executor -> Fuser pass against a single snapshot.

        Multi-part queries are split and each part runs its own fan-out; the
        fused lists are merged and confidence is the mean over the parts.
        """
        return self._search_pass(query, snapshot or self.index.current_or_none())

    def _search_pass(self, query: str, snapshot: IndexSnapshot | None) -> SearchPass:
        now = self.clock()
        if snapshot is None:
            logger.info("search_without_index", extra={"query": query})
            return SearchPass(
                query=query,
                classification=self.router.classify(query, now=now),
                outcomes={},
                results=(),
                confidence=0.0,
            )

        classification = self.router.classify(query, snapshot.entity_vocabulary, now=now)
        parts = self.decomposer.decompose(query) if classification.is_multi_part else (query,)
        if len(parts) > 1:
            logger.info("query_decomposed", extra={"parts": list(parts)})
            outcome_maps: list[dict[StrategyName, StrategyOutcome]] = []
            part_results: list[list[ConsensusResult]] = []
            confidences: list[float] = []
            for part in parts:
                part_classification = self.router.classify(
                    part, snapshot.entity_vocabulary, now=now
                )
                outcomes, fused = self._execute(part, part_classification, snapshot, now)
                limited = fused[: self.config.max_results]
                outcome_maps.append(outcomes)
                part_results.append(limited)
                confidences.append(self.fuser.confidence(limited, part, snapshot.documents))
            outcomes = merge_outcomes(outcome_maps)
            results = tuple(self.fuser.merge(part_results)[: self.config.max_results])
            confidence = sum(confidences) / len(confidences) if results else 0.0
        else:
            outcomes, fused = self._execute(query, classification, snapshot, now)
            results = tuple(fused[: self.config.max_results])
            confidence = self.fuser.confidence(list(results), query, snapshot.documents)

        logger.info(
            "search_pass",
            extra={
                "query_type": classification.query_type.value,
                "part_count": len(parts),
                "strategies": [name.value for name in outcomes],
                "result_count": len(results),
                "confidence": round(confidence, 4),
                "generation": snapshot.generation,
            },
        )
        return SearchPass(
            query=query,
            classification=classification,
            outcomes=outcomes,
            results=results,
            confidence=confidence,
            index_generation=snapshot.generation,
        )

    def _execute(
        self,
        query: str,
        classification: QueryClassification,
        snapshot: IndexSnapshot,
        now: datetime,
    ) -> tuple[dict[StrategyName, StrategyOutcome], list[ConsensusResult]]:
        runnable: dict[StrategyName, Strategy] = {}
        for name in self.router.select_strategies(classification):
            strategy = self.strategies.get(name)
            if strategy is None:
                logger.info("strategy_not_configured", extra={"strategy": name.value})
                continue
            try:
                strategy.ensure_available(snapshot)
            except IndexUnavailable as exc:
                logger.info(
                    "strategy_unavailable",
                    extra={"strategy": name.value, "detail": str(exc)},
                )
                continue
            runnable[name] = strategy

        context = SearchContext(
            query=query,
            classification=classification,
            snapshot=snapshot,
            limit=self.config.max_results,
            now=now,
        )
        outcomes = self.executor.execute(
            context,
            runnable,
            per_strategy_timeout=self.config.per_strategy_timeout,
            overall_deadline=self.config.overall_deadline,
        )
        return outcomes, self.fuser.fuse(outcomes, documents=snapshot.documents)

    def search(self, query: str) -> SearchBundle:
        """Run the iterative search loop against the current snapshot."""
        return self.search_against(query, self.index.current_or_none())

    def search_against(self, query: str, snapshot: IndexSnapshot | None) -> SearchBundle:
        """Run every pass against the given snapshot, even if a newer one is published.

        With no snapshot every pass is empty and the bundle ends exhausted.
        """
        controller = IterativeController(
            search_pass=lambda text: self._search_pass(text, snapshot),
            rewriter=self.rewriter,
            max_iterations=self.config.max_iterations,
            confidence_threshold=self.config.confidence_threshold,
        )
        return controller.run(query)

    def stats(self) -> dict[str, object]:
        snapshot = self.index.current_or_none()
        if snapshot is None:
            return {
                "generation": 0,
                "document_count": 0,
                "chunk_count": 0,
                "term_count": 0,
                "vector_count": 0,
                "embedding_dimension": 0,
                "embedding_model": None,
            }
        return snapshot.stats()
