from __future__ import annotations

"""Search history persistence and reuse of confident answers."""

import hashlib
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from lifesearch.search.tokenization import normalize_text
from lifesearch.search.types import SearchBundle

CACHEABLE_CONFIDENCE = 0.7


class HistoryStoreError(RuntimeError):
    """Raised when search history persistence fails."""
    pass


@dataclass(frozen=True)
class HistoryRecord:
    """Persisted summary of one search call."""
    record_id: str
    query: str
    confidence: float
    iterations: int
    result_count: int
    state: str
    index_generation: int
    created_at: datetime
    payload: dict[str, Any]


def query_hash(query: str) -> str:
    """Stable hash of a case- and whitespace-normalized query."""
    normalized = normalize_text(query).lower()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class SearchHistoryStore:
    """Store search history in a SQL database."""
    def __init__(self, connection_uri: str) -> None:
        """Initialize the history store and ensure tables exist."""
        try:
            from sqlalchemy import (
                Column,
                DateTime,
                Float,
                Integer,
                MetaData,
                String,
                Table,
                Text,
                create_engine,
            )
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise HistoryStoreError("sqlalchemy is required to use the history store") from exc

        self._engine = create_engine(connection_uri)
        self._metadata = MetaData()
        self._table = Table(
            "search_history",
            self._metadata,
            Column("id", String(36), primary_key=True),
            Column("query", Text, nullable=False),
            Column("query_hash", String(64), nullable=False, index=True),
            Column("confidence", Float, nullable=False),
            Column("iterations", Integer, nullable=False),
            Column("result_count", Integer, nullable=False),
            Column("state", String(16), nullable=False),
            Column("index_generation", Integer, nullable=False),
            Column("payload", Text, nullable=False),
            Column("created_at", DateTime(timezone=True), nullable=False),
        )
        self._metadata.create_all(self._engine)

    def record(self, bundle: SearchBundle) -> str:
        """Persist a finished search and return its record ID."""
        record_id = str(uuid.uuid4())
        values = {
            "id": record_id,
            "query": bundle.query,
            "query_hash": query_hash(bundle.query),
            "confidence": float(bundle.confidence),
            "iterations": bundle.iterations,
            "result_count": bundle.result_count,
            "state": bundle.state,
            "index_generation": bundle.index_generation,
            "payload": json.dumps(bundle.to_dict()),
            "created_at": datetime.now(timezone.utc),
        }
        with self._engine.begin() as conn:
            conn.execute(self._table.insert().values(**values))
        return record_id

    def lookup(
        self,
        query: str,
        index_generation: int,
        max_age: timedelta,
        min_confidence: float = CACHEABLE_CONFIDENCE,
    ) -> HistoryRecord | None:
        """Return the newest confident record for the query on this index generation."""
        from sqlalchemy import select

        cutoff = datetime.now(timezone.utc) - max_age
        statement = (
            select(self._table)
            .where(self._table.c.query_hash == query_hash(query))
            .where(self._table.c.index_generation == index_generation)
            .where(self._table.c.confidence >= min_confidence)
            .order_by(self._table.c.created_at.desc())
            .limit(1)
        )
        with self._engine.begin() as conn:
            row = conn.execute(statement).mappings().first()
        if row is None:
            return None
        record = self._to_record(row)
        if record.created_at < cutoff:
            return None
        return record

    def recent(self, limit: int = 20) -> list[HistoryRecord]:
        from sqlalchemy import select

        statement = select(self._table).order_by(self._table.c.created_at.desc()).limit(limit)
        with self._engine.begin() as conn:
            rows = conn.execute(statement).mappings().all()
        return [self._to_record(row) for row in rows]

    def _to_record(self, row: Any) -> HistoryRecord:
        created_at = row["created_at"]
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return HistoryRecord(
            record_id=row["id"],
            query=row["query"],
            confidence=float(row["confidence"]),
            iterations=int(row["iterations"]),
            result_count=int(row["result_count"]),
            state=row["state"],
            index_generation=int(row["index_generation"]),
            created_at=created_at,
            payload=json.loads(row["payload"]),
        )
