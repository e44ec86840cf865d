from __future__ import annotations

"""In-memory cosine similarity search over snapshot vectors."""

import logging
import math
import threading
from dataclasses import dataclass

from lifesearch.search.errors import StrategyCancelled
from lifesearch.search.index import IndexSnapshot
from lifesearch.search.types import StrategyName, StrategyResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorSearcher:
    """Brute-force vector search resolving chunk hits to their documents."""
    strategy: StrategyName = StrategyName.VECTOR_SEMANTIC

    def search(
        self,
        snapshot: IndexSnapshot | None,
        query_vector: list[float],
        top_k: int = 20,
        score_threshold: float = 0.0,
        query_model: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[StrategyResult]:
        """Return the top documents by best-chunk cosine similarity.

        Faults never propagate: an unbuilt index, a width mismatch or vectors
        from another embedding model all yield an empty list and a warning.
        """
        try:
            return self._search(
                snapshot, query_vector, top_k, score_threshold, query_model, cancel_event
            )
        except StrategyCancelled:
            raise
        except Exception as exc:
            logger.warning("vector_search_failed", extra={"detail": str(exc)})
            return []

    def _search(
        self,
        snapshot: IndexSnapshot | None,
        query_vector: list[float],
        top_k: int,
        score_threshold: float,
        query_model: str | None,
        cancel_event: threading.Event | None,
    ) -> list[StrategyResult]:
        if snapshot is None or not snapshot.has_vectors:
            logger.warning("vector_index_unavailable")
            return []
        if len(query_vector) != snapshot.dimension:
            logger.warning(
                "vector_dimension_mismatch",
                extra={"expected": snapshot.dimension, "actual": len(query_vector)},
            )
            return []
        if query_model is not None and query_model != snapshot.embedding_model:
            logger.warning(
                "vector_model_mismatch",
                extra={"index_model": snapshot.embedding_model, "query_model": query_model},
            )
            return []

        query = self._normalize(query_vector)
        if query is None:
            return []
        best: dict[str, float] = {}
        for entry_id, vector in snapshot.vectors.items():
            if cancel_event is not None and cancel_event.is_set():
                raise StrategyCancelled("vector search cancelled")
            if vector.model != snapshot.embedding_model:
                continue
            similarity = max(0.0, min(1.0, self._dot(query, vector.values)))
            if similarity < score_threshold or similarity == 0.0:
                continue
            doc_id = snapshot.parent_of(entry_id)
            if similarity > best.get(doc_id, -1.0):
                best[doc_id] = similarity

        ranked = sorted(best.items(), key=lambda item: (-item[1], item[0]))
        return [
            StrategyResult(doc_id=doc_id, score=score, strategy=self.strategy)
            for doc_id, score in ranked[:top_k]
        ]

    def _normalize(self, vector: list[float]) -> list[float] | None:
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0 or not math.isfinite(norm):
            return None
        return [value / norm for value in vector]

    def _dot(self, a: list[float], b: tuple[float, ...]) -> float:
        return sum(x * y for x, y in zip(a, b))

    def stats(self, snapshot: IndexSnapshot | None) -> dict[str, int | str | None]:
        """Return basic stats for the vector index."""
        if snapshot is None:
            return {"backend": "memory", "vector_count": 0, "embedding_dimension": 0}
        return {
            "backend": "memory",
            "vector_count": len(snapshot.vectors),
            "embedding_dimension": snapshot.dimension,
            "embedding_model": snapshot.embedding_model,
        }
