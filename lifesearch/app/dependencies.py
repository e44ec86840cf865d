from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from lifesearch.app.settings import settings
from lifesearch.loaders.lifelogs import InMemoryDocumentSource, JsonDirectoryDocumentSource
from lifesearch.metadata.store import SearchHistoryStore
from lifesearch.search.config import SearchConfig
from lifesearch.search.embeddings import (
    EmbeddingConfigError,
    EmbeddingConfigReport,
    EmbeddingProvider,
    HashEmbedder,
    OllamaEmbedder,
    OpenAIEmbedder,
    build_embedding_config_report,
)
from lifesearch.search.fusion import StrategyWeights
from lifesearch.search.pipeline import SearchEngine

logger = logging.getLogger(__name__)


def build_search_config() -> SearchConfig:
    return SearchConfig(
        max_iterations=settings.max_iterations,
        confidence_threshold=settings.confidence_threshold,
        per_strategy_timeout=settings.per_strategy_timeout,
        overall_deadline=settings.overall_deadline,
        strategy_weights=StrategyWeights.from_mapping(settings.strategy_weights),
        vector_score_threshold=settings.vector_score_threshold,
        target_embedding_dimension=settings.target_embedding_dimension or None,
        max_results=settings.max_results,
        chunking_enabled=settings.chunking_enabled,
        sentences_per_chunk=settings.chunk_sentences,
        chunk_overlap=settings.chunk_overlap,
        known_entities=settings.known_entities,
        entity_aliases=settings.entity_aliases,
        rewriter=settings.query_rewriter,
    )


def build_embedder() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key or "",
            model=settings.openai_embedding_model or "",
            dimension=settings.embedding_dimension,
        )
    if provider == "ollama":
        return OllamaEmbedder(
            base_url=settings.ollama_base_url,
            model=settings.ollama_embedding_model or "",
            dimension=settings.embedding_dimension,
            timeout=settings.ollama_timeout,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")


def get_embedding_config_report() -> EmbeddingConfigReport:
    provider = settings.embedding_provider.lower().strip()
    model = None
    if provider == "openai":
        model = settings.openai_embedding_model
    elif provider == "ollama":
        model = settings.ollama_embedding_model
    return build_embedding_config_report(
        provider,
        model,
        settings.embedding_dimension,
        settings.target_embedding_dimension or None,
    )


@lru_cache
def get_document_source() -> InMemoryDocumentSource:
    source = InMemoryDocumentSource()
    if settings.data_dir:
        directory = Path(settings.data_dir)
        if directory.is_dir():
            source.add(JsonDirectoryDocumentSource(directory).list_all())
        else:
            logger.warning("data_dir_missing", extra={"directory": str(directory)})
    return source


@lru_cache
def get_engine() -> SearchEngine:
    engine = SearchEngine(config=build_search_config(), embedder=build_embedder())
    source = get_document_source()
    if source.list_all():
        engine.rebuild_from(source)
    return engine


@lru_cache
def get_history_store() -> SearchHistoryStore | None:
    if not settings.history_db_uri:
        return None
    return SearchHistoryStore(settings.history_db_uri)


def reset_engine_cache() -> None:
    get_engine.cache_clear()
    get_document_source.cache_clear()
    get_history_store.cache_clear()
