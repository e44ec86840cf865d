from __future__ import annotations

"""Validated configuration for the search engine."""

import math
from dataclasses import dataclass, field
from typing import Mapping

from lifesearch.search.errors import ConfigurationError
from lifesearch.search.executor import validate_timeouts
from lifesearch.search.fusion import StrategyWeights


@dataclass(frozen=True)
class SearchConfig:
    max_iterations: int = 3
    confidence_threshold: float = 0.8
    per_strategy_timeout: float = 2.0
    overall_deadline: float = 5.0
    strategy_weights: StrategyWeights = field(default_factory=StrategyWeights)
    vector_score_threshold: float = 0.3
    target_embedding_dimension: int | None = 768
    max_results: int = 20
    chunking_enabled: bool = True
    sentences_per_chunk: int = 5
    chunk_overlap: int = 2
    known_entities: tuple[str, ...] = ()
    entity_aliases: Mapping[str, str] = field(default_factory=dict)
    rewriter: str = "rules"

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be at least 1")
        if not math.isfinite(self.confidence_threshold) or not (
            0.0 <= self.confidence_threshold <= 1.0
        ):
            raise ConfigurationError("confidence_threshold must be within [0, 1]")
        validate_timeouts(self.per_strategy_timeout, self.overall_deadline)
        if not math.isfinite(self.vector_score_threshold) or not (
            0.0 <= self.vector_score_threshold <= 1.0
        ):
            raise ConfigurationError("vector_score_threshold must be within [0, 1]")
        if self.target_embedding_dimension is not None and self.target_embedding_dimension < 0:
            raise ConfigurationError("target_embedding_dimension must not be negative")
        if self.max_results < 1:
            raise ConfigurationError("max_results must be at least 1")
        if self.sentences_per_chunk < 1 or self.chunk_overlap < 0:
            raise ConfigurationError("chunk window settings must be positive")
