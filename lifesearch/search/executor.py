from __future__ import annotations

"""Bounded parallel fan-out of retrieval strategies."""

import logging
import math
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Iterable, Mapping

from lifesearch.search.errors import ConfigurationError
from lifesearch.search.metrics import observe_strategy
from lifesearch.search.strategies import SearchContext, Strategy
from lifesearch.search.types import StrategyName, StrategyOutcome, StrategyResult

logger = logging.getLogger(__name__)

COMPLETED = "completed"
TIMEOUT = "timeout"
ERROR = "error"


def validate_timeouts(per_strategy_timeout: float, overall_deadline: float) -> None:
    """Raise ConfigurationError for unusable timeout settings."""
    for label, value in (
        ("per_strategy_timeout", per_strategy_timeout),
        ("overall_deadline", overall_deadline),
    ):
        if not math.isfinite(value) or value <= 0:
            raise ConfigurationError(f"{label} must be a positive number, got {value}")
    if overall_deadline < per_strategy_timeout:
        raise ConfigurationError(
            "overall_deadline must be greater than or equal to per_strategy_timeout"
        )


def merge_outcomes(
    outcome_maps: Iterable[Mapping[StrategyName, StrategyOutcome]],
) -> dict[StrategyName, StrategyOutcome]:
    """Combine per-sub-query outcomes into one report per strategy.

    A strategy that timed out or failed for any sub-query keeps that status and
    error, alongside the results of the sub-queries where it completed.
    """
    merged: dict[StrategyName, StrategyOutcome] = {}
    for outcomes in outcome_maps:
        for name, outcome in outcomes.items():
            current = merged.get(name)
            if current is None:
                merged[name] = outcome
                continue
            merged[name] = StrategyOutcome(
                strategy=name,
                status=outcome.status if current.completed else current.status,
                results=current.results + outcome.results,
                error=current.error or outcome.error,
                elapsed=max(current.elapsed, outcome.elapsed),
            )
    return merged


@dataclass
class ParallelSearchExecutor:
    """Run strategies concurrently under a per-strategy timeout and a deadline.

    A single call owns its thread pool. When it returns, the context's cancel
    event is set and the pool is shut down without waiting, so stragglers can
    observe cancellation and their output is discarded.
    """
    max_workers: int | None = None

    def execute(
        self,
        context: SearchContext,
        strategies: Mapping[StrategyName, Strategy],
        per_strategy_timeout: float,
        overall_deadline: float,
    ) -> dict[StrategyName, StrategyOutcome]:
        validate_timeouts(per_strategy_timeout, overall_deadline)
        if not strategies:
            return {}

        workers = self.max_workers or len(strategies)
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="lifesearch-strategy")
        started = time.monotonic()
        deadline = started + overall_deadline
        pending: dict[Future, StrategyName] = {}
        submitted_at: dict[StrategyName, float] = {}
        outcomes: dict[StrategyName, StrategyOutcome] = {}
        try:
            for name, strategy in strategies.items():
                submitted_at[name] = time.monotonic()
                pending[pool.submit(strategy.run, context)] = name

            while pending:
                next_expiry = min(
                    deadline,
                    min(submitted_at[name] + per_strategy_timeout for name in pending.values()),
                )
                done, _ = wait(
                    list(pending),
                    timeout=max(0.0, next_expiry - time.monotonic()),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    name = pending.pop(future)
                    outcomes[name] = self._collect(
                        name, future, time.monotonic() - submitted_at[name]
                    )

                now = time.monotonic()
                for future, name in list(pending.items()):
                    elapsed = now - submitted_at[name]
                    if elapsed < per_strategy_timeout and now < deadline:
                        continue
                    del pending[future]
                    future.cancel()
                    reason = "deadline" if now >= deadline else "timeout"
                    outcomes[name] = StrategyOutcome(
                        strategy=name,
                        status=TIMEOUT,
                        error=f"{name.value} exceeded its {reason} after {elapsed:.3f}s",
                        elapsed=elapsed,
                    )
                    logger.warning(
                        "strategy_timeout",
                        extra={
                            "strategy": name.value,
                            "reason": reason,
                            "elapsed": round(elapsed, 4),
                        },
                    )
                    observe_strategy(name.value, TIMEOUT, elapsed)
        finally:
            context.cancel_event.set()
            pool.shutdown(wait=False, cancel_futures=True)

        logger.info(
            "strategies_executed",
            extra={
                "statuses": {name.value: outcome.status for name, outcome in outcomes.items()},
                "elapsed": round(time.monotonic() - started, 4),
            },
        )
        return {name: outcomes[name] for name in strategies if name in outcomes}

    def _collect(self, name: StrategyName, future: Future, elapsed: float) -> StrategyOutcome:
        try:
            results = future.result()
        except Exception as exc:
            logger.warning(
                "strategy_failed",
                extra={"strategy": name.value, "detail": f"{type(exc).__name__}: {exc}"},
            )
            observe_strategy(name.value, ERROR, elapsed)
            return StrategyOutcome(
                strategy=name,
                status=ERROR,
                error=f"{type(exc).__name__}: {exc}",
                elapsed=elapsed,
            )
        observe_strategy(name.value, COMPLETED, elapsed)
        return StrategyOutcome(
            strategy=name,
            status=COMPLETED,
            results=tuple(self._accept(name, results)),
            elapsed=elapsed,
        )

    def _accept(self, name: StrategyName, results: list[StrategyResult]) -> list[StrategyResult]:
        accepted: list[StrategyResult] = []
        for result in results:
            if not math.isfinite(result.score):
                continue
            score = min(1.0, max(0.0, result.score))
            accepted.append(StrategyResult(doc_id=result.doc_id, score=score, strategy=name))
        return accepted
