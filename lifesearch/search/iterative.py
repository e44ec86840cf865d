from __future__ import annotations

"""Confidence-gated iterative search loop."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from lifesearch.search.errors import ConfigurationError
from lifesearch.search.metrics import observe_search
from lifesearch.search.rewriter import QueryRewriter
from lifesearch.search.types import IterationState, SearchBundle, SearchPass

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    INIT = "init"
    SEARCH = "search"
    EVALUATE = "evaluate"
    REFINE = "refine"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"


TERMINAL_STATES = frozenset({ControllerState.ACCEPTED, ControllerState.EXHAUSTED})


@dataclass
class IterativeController:
    """Repeat search passes until confidence clears the threshold.

    Every pass counts as one iteration. Both terminal states report the best
    result list seen so far, which is not necessarily the last one.
    """
    search_pass: Callable[[str], SearchPass]
    rewriter: QueryRewriter
    max_iterations: int = 3
    confidence_threshold: float = 0.8

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be at least 1")

    def run(self, query: str) -> SearchBundle:
        state = ControllerState.INIT
        progress = IterationState(query=query)
        while state not in TERMINAL_STATES:
            if state == ControllerState.INIT:
                state = ControllerState.SEARCH
            elif state == ControllerState.SEARCH:
                progress.iteration += 1
                current = self.search_pass(progress.query)
                progress.consider(current)
                logger.info(
                    "search_iteration",
                    extra={
                        "iteration": progress.iteration,
                        "query": progress.query,
                        "confidence": round(current.confidence, 4),
                        "result_count": len(current.results),
                    },
                )
                state = ControllerState.EVALUATE
            elif state == ControllerState.EVALUATE:
                if progress.confidence >= self.confidence_threshold:
                    state = ControllerState.ACCEPTED
                elif progress.iteration < self.max_iterations:
                    state = ControllerState.REFINE
                else:
                    state = ControllerState.EXHAUSTED
            elif state == ControllerState.REFINE:
                progress.query = self.rewriter.rewrite(progress.query)
                state = ControllerState.SEARCH

        best = progress.best_pass
        bundle = SearchBundle(
            query=query,
            final_query=best.query if best is not None else query,
            results=progress.best_results,
            confidence=progress.best_confidence,
            iterations=progress.iteration,
            state=state.value,
            outcomes=dict(best.outcomes) if best is not None else {},
            index_generation=best.index_generation if best is not None else 0,
        )
        observe_search(bundle.iterations, bundle.confidence, bundle.state)
        logger.info(
            "search_complete",
            extra={
                "state": bundle.state,
                "iterations": bundle.iterations,
                "confidence": round(bundle.confidence, 4),
                "result_count": bundle.result_count,
            },
        )
        return bundle
