from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _parse_pairs(raw: str) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for part in raw.split(","):
        part = part.strip()
        if not part or "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().lower()
        value = value.strip()
        if key and value:
            mapping[key] = value
    return mapping


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    max_iterations: int = int(os.getenv("LIFESEARCH_MAX_ITERATIONS", "3"))
    confidence_threshold: float = float(os.getenv("LIFESEARCH_CONFIDENCE_THRESHOLD", "0.8"))
    per_strategy_timeout: float = float(os.getenv("LIFESEARCH_STRATEGY_TIMEOUT", "2.0"))
    overall_deadline: float = float(os.getenv("LIFESEARCH_OVERALL_DEADLINE", "5.0"))
    strategy_weights_raw: str = os.getenv("LIFESEARCH_STRATEGY_WEIGHTS", "")
    vector_score_threshold: float = float(os.getenv("LIFESEARCH_VECTOR_SCORE_THRESHOLD", "0.3"))
    max_results: int = int(os.getenv("LIFESEARCH_MAX_RESULTS", "20"))
    chunking_enabled: bool = _flag("LIFESEARCH_CHUNKING", "true")
    chunk_sentences: int = int(os.getenv("LIFESEARCH_CHUNK_SENTENCES", "5"))
    chunk_overlap: int = int(os.getenv("LIFESEARCH_CHUNK_OVERLAP", "2"))
    query_rewriter: str = os.getenv("LIFESEARCH_QUERY_REWRITER", "rules")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "hash")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "256"))
    target_embedding_dimension: int = int(os.getenv("TARGET_EMBEDDING_DIMENSION", "768"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_embedding_model: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_embedding_model: str | None = os.getenv("OLLAMA_EMBEDDING_MODEL")
    ollama_timeout: float = float(os.getenv("OLLAMA_TIMEOUT", "60"))
    data_dir: str | None = os.getenv("LIFESEARCH_DATA_DIR")
    known_entities_raw: str = os.getenv("LIFESEARCH_KNOWN_ENTITIES", "")
    entity_aliases_raw: str = os.getenv("LIFESEARCH_ENTITY_ALIASES", "")
    history_db_uri: str | None = os.getenv("LIFESEARCH_HISTORY_DB_URI")
    history_cache_enabled: bool = _flag("LIFESEARCH_HISTORY_CACHE", "false")
    history_max_age: float = float(os.getenv("LIFESEARCH_HISTORY_MAX_AGE", "3600"))
    metrics_enabled: bool = _flag("LIFESEARCH_METRICS_ENABLED", "true")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def strategy_weights(self) -> dict[str, float]:
        """Parse 'fast-keyword=0.6,vector-semantic=0.4' overrides.

        Values that are not numbers are kept as NaN so validation rejects them
        instead of silently falling back to the defaults.
        """
        raw = os.getenv("LIFESEARCH_STRATEGY_WEIGHTS", self.strategy_weights_raw).strip()
        mapping: dict[str, float] = {}
        for key, value in _parse_pairs(raw).items():
            try:
                mapping[key] = float(value)
            except ValueError:
                mapping[key] = float("nan")
        return mapping

    @property
    def known_entities(self) -> tuple[str, ...]:
        raw = os.getenv("LIFESEARCH_KNOWN_ENTITIES", self.known_entities_raw)
        return tuple(value.strip().lower() for value in raw.split(",") if value.strip())

    @property
    def entity_aliases(self) -> dict[str, str]:
        raw = os.getenv("LIFESEARCH_ENTITY_ALIASES", self.entity_aliases_raw)
        return {key: value.lower() for key, value in _parse_pairs(raw).items()}


settings = Settings()
