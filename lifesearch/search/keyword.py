from __future__ import annotations

"""Inverted-index keyword matching with phrase adjacency bonus."""

import threading
from dataclasses import dataclass

from lifesearch.search.errors import StrategyCancelled
from lifesearch.search.index import IndexSnapshot
from lifesearch.search.tokenization import is_significant, significant_terms, token_texts
from lifesearch.search.types import StrategyName, StrategyResult


def recency_key(snapshot: IndexSnapshot, doc_id: str) -> float:
    document = snapshot.documents.get(doc_id)
    if document is None:
        return 0.0
    return document.created_at.timestamp()


@dataclass(frozen=True)
class FastKeywordMatcher:
    """Score documents by saturated term frequency plus phrase adjacency."""
    saturation: float = 0.5
    phrase_bonus: float = 0.1
    strategy: StrategyName = StrategyName.FAST_KEYWORD

    def search(
        self,
        snapshot: IndexSnapshot,
        query: str,
        max_results: int = 20,
        cancel_event: threading.Event | None = None,
    ) -> list[StrategyResult]:
        terms = significant_terms(query)
        if not terms:
            return []
        candidates: set[str] = set()
        for term in terms:
            candidates.update(snapshot.postings.get(term, {}).keys())
        if not candidates:
            return []

        pairs = self._phrase_pairs(query)
        scored: list[tuple[float, str]] = []
        for doc_id in candidates:
            if cancel_event is not None and cancel_event.is_set():
                raise StrategyCancelled("keyword search cancelled")
            score = self._term_score(snapshot, terms, doc_id)
            score += self.phrase_bonus * self._adjacent_pairs(snapshot, pairs, doc_id)
            scored.append((min(1.0, max(0.0, score)), doc_id))

        scored.sort(key=lambda item: (-item[0], -recency_key(snapshot, item[1]), item[1]))
        return [
            StrategyResult(doc_id=doc_id, score=score, strategy=self.strategy)
            for score, doc_id in scored[:max_results]
        ]

    def _term_score(self, snapshot: IndexSnapshot, terms: list[str], doc_id: str) -> float:
        total = 0.0
        for term in terms:
            posting = snapshot.postings.get(term, {}).get(doc_id)
            if posting is None:
                continue
            tf = posting.term_frequency
            total += tf / (tf + self.saturation)
        return total / len(terms)

    def _phrase_pairs(self, query: str) -> list[tuple[str, str]]:
        tokens = token_texts(query)
        pairs: list[tuple[str, str]] = []
        for first, second in zip(tokens, tokens[1:]):
            if is_significant(first) or is_significant(second):
                pairs.append((first, second))
        return pairs

    def _adjacent_pairs(
        self, snapshot: IndexSnapshot, pairs: list[tuple[str, str]], doc_id: str
    ) -> int:
        matched = 0
        for first, second in pairs:
            left = snapshot.postings.get(first, {}).get(doc_id)
            right = snapshot.postings.get(second, {}).get(doc_id)
            if left is None or right is None:
                continue
            right_positions = set(right.positions)
            if any(position + 1 in right_positions for position in left.positions):
                matched += 1
        return matched
