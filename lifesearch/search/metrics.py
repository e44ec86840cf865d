from __future__ import annotations

"""Prometheus metrics for search passes and strategies."""

from prometheus_client import Counter, Histogram

STRATEGY_OUTCOMES = Counter(
    "lifesearch_strategy_outcomes_total",
    "Strategy executions by terminal status",
    ["strategy", "status"],
)
STRATEGY_LATENCY = Histogram(
    "lifesearch_strategy_duration_seconds",
    "Strategy execution time in seconds",
    ["strategy"],
)
SEARCH_ITERATIONS = Histogram(
    "lifesearch_search_iterations",
    "Search passes per iterative search call",
    buckets=(1, 2, 3, 4, 5, 8),
)
SEARCH_CONFIDENCE = Histogram(
    "lifesearch_search_confidence",
    "Reported confidence of completed searches",
    buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 0.95),
)
SEARCH_TERMINAL_STATES = Counter(
    "lifesearch_search_terminal_total",
    "Iterative searches by terminal state",
    ["state"],
)
INDEX_DOCUMENTS = Histogram(
    "lifesearch_index_documents",
    "Documents per published index snapshot",
    buckets=(10, 100, 1000, 10000, 100000),
)


def observe_strategy(strategy: str, status: str, elapsed: float) -> None:
    STRATEGY_OUTCOMES.labels(strategy, status).inc()
    STRATEGY_LATENCY.labels(strategy).observe(elapsed)


def observe_search(iterations: int, confidence: float, state: str) -> None:
    SEARCH_ITERATIONS.observe(iterations)
    SEARCH_CONFIDENCE.observe(confidence)
    SEARCH_TERMINAL_STATES.labels(state).inc()
