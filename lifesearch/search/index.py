from __future__ import annotations

"""Inverted and vector index snapshots with atomic publication."""

import logging
import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from lifesearch.loaders.chunking import chunk_document
from lifesearch.search.embeddings import (
    EmbeddingError,
    EmbeddingProvider,
    l2_normalize,
    native_dimension_of,
    validate_vector,
)
from lifesearch.search.errors import IndexUnavailable
from lifesearch.search.tokenization import tokenize
from lifesearch.search.types import Chunk, Document, EmbeddingVector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Posting:
    """Occurrences of one term in one document."""
    doc_id: str
    term_frequency: int
    positions: tuple[int, ...]


@dataclass(frozen=True)
class IndexSnapshot:
    """Immutable, fully built view of the corpus read by search strategies."""
    generation: int
    documents: Mapping[str, Document]
    chunks: Mapping[str, Chunk]
    postings: Mapping[str, Mapping[str, Posting]]
    vectors: Mapping[str, EmbeddingVector]
    dimension: int
    embedding_model: str | None
    entity_vocabulary: frozenset[str] = frozenset()
    built_at: float = field(default_factory=time.time)

    @property
    def has_vectors(self) -> bool:
        return bool(self.vectors)

    def parent_of(self, entry_id: str) -> str:
        """Resolve a vector entry id (chunk or document) to its document id."""
        chunk = self.chunks.get(entry_id)
        if chunk is not None:
            return chunk.parent_id
        return entry_id

    def stats(self) -> dict[str, int | str | None]:
        return {
            "generation": self.generation,
            "document_count": len(self.documents),
            "chunk_count": len(self.chunks),
            "term_count": len(self.postings),
            "vector_count": len(self.vectors),
            "embedding_dimension": self.dimension,
            "embedding_model": self.embedding_model,
        }


def _freeze(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


@dataclass
class IndexBuilder:
    """Build index snapshots from a batch of documents."""
    embedder: EmbeddingProvider | None = None
    chunking_enabled: bool = True
    sentences_per_chunk: int = 5
    chunk_overlap: int = 2
    known_entities: tuple[str, ...] = ()
    batch_size: int = 64

    def build(self, documents: Iterable[Document], generation: int = 0) -> IndexSnapshot:
        """Tokenize, chunk and embed documents into a new snapshot.

        Documents are keyed by id, so building from the same batch twice yields
        equivalent snapshots. A later duplicate id replaces an earlier one.
        """
        started = time.monotonic()
        by_id: dict[str, Document] = {}
        for document in documents:
            by_id[document.doc_id] = document

        postings: dict[str, dict[str, Posting]] = {}
        for doc_id in sorted(by_id):
            self._index_terms(by_id[doc_id], postings)

        chunks: dict[str, Chunk] = {}
        if self.chunking_enabled:
            for doc_id in sorted(by_id):
                for chunk in chunk_document(
                    by_id[doc_id],
                    sentences_per_chunk=self.sentences_per_chunk,
                    overlap=self.chunk_overlap,
                    known_entities=self.known_entities,
                ):
                    chunks[chunk.chunk_id] = chunk

        vectors = self._embed_entries(by_id, chunks)
        entity_vocabulary = frozenset(
            {entity.lower() for entity in self.known_entities}
            | {entity for chunk in chunks.values() for entity in chunk.entities}
        )
        dimension = self.embedder.dimension if self.embedder is not None else 0
        snapshot = IndexSnapshot(
            generation=generation,
            documents=_freeze(by_id),
            chunks=_freeze(chunks),
            postings=_freeze({term: _freeze(entry) for term, entry in postings.items()}),
            vectors=_freeze(vectors),
            dimension=dimension,
            embedding_model=self.embedder.model_name if self.embedder is not None else None,
            entity_vocabulary=entity_vocabulary,
        )
        logger.info(
            "index_built",
            extra={
                "generation": generation,
                "document_count": len(by_id),
                "chunk_count": len(chunks),
                "term_count": len(postings),
                "vector_count": len(vectors),
                "elapsed": round(time.monotonic() - started, 4),
            },
        )
        return snapshot

    def _index_terms(self, document: Document, postings: dict[str, dict[str, Posting]]) -> None:
        positions: dict[str, list[int]] = {}
        for token in tokenize(document.searchable_text):
            positions.setdefault(token.text, []).append(token.position)
        for term, term_positions in positions.items():
            postings.setdefault(term, {})[document.doc_id] = Posting(
                doc_id=document.doc_id,
                term_frequency=len(term_positions),
                positions=tuple(term_positions),
            )

    def _embed_entries(
        self, documents: dict[str, Document], chunks: dict[str, Chunk]
    ) -> dict[str, EmbeddingVector]:
        if self.embedder is None:
            return {}
        entries: list[tuple[str, str]] = []
        if chunks:
            for chunk_id, chunk in chunks.items():
                title = documents[chunk.parent_id].title
                text = f"{title}\n{chunk.content}" if title else chunk.content
                entries.append((chunk_id, text))
        else:
            for doc_id in sorted(documents):
                entries.append((doc_id, documents[doc_id].searchable_text))

        model = self.embedder.model_name
        native = native_dimension_of(self.embedder)
        vectors: dict[str, EmbeddingVector] = {}
        for start in range(0, len(entries), self.batch_size):
            batch = entries[start : start + self.batch_size]
            embedded = self.embedder.embed_batch([text for _, text in batch])
            if len(embedded) != len(batch):
                raise EmbeddingError("Embedding backend returned a short batch")
            for (entry_id, _), values in zip(batch, embedded):
                cleaned = l2_normalize(validate_vector(values, self.embedder.dimension))
                vectors[entry_id] = EmbeddingVector(
                    values=tuple(cleaned), native_dimension=native, model=model
                )
        return vectors


class SearchIndex:
    """Holder of the currently published snapshot."""
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: IndexSnapshot | None = None
        self._reserved = 0

    def next_generation(self) -> int:
        """Reserve and return a generation number no other build will receive."""
        with self._lock:
            self._reserved += 1
            return self._reserved

    def publish(self, snapshot: IndexSnapshot) -> IndexSnapshot:
        """Swap in a fully built snapshot. Older generations are ignored."""
        with self._lock:
            if self._snapshot is not None and snapshot.generation <= self._snapshot.generation:
                logger.warning(
                    "index_publish_stale",
                    extra={
                        "generation": snapshot.generation,
                        "current_generation": self._snapshot.generation,
                    },
                )
                return self._snapshot
            self._snapshot = snapshot
            self._reserved = max(self._reserved, snapshot.generation)
        logger.info("index_published", extra={"generation": snapshot.generation})
        return snapshot

    def current(self) -> IndexSnapshot:
        """Return the published snapshot or raise IndexUnavailable."""
        with self._lock:
            snapshot = self._snapshot
        if snapshot is None:
            raise IndexUnavailable("No index has been built yet")
        return snapshot

    def current_or_none(self) -> IndexSnapshot | None:
        with self._lock:
            return self._snapshot
