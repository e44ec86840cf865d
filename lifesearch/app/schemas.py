from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1, le=100)
    include_highlights: bool = True
    use_cache: bool = True


class SearchHit(BaseModel):
    doc_id: str
    title: str
    created_at: datetime | None = None
    consensus_score: float
    confidence_contribution: float
    strategies: list[str]
    scores: list[float]
    highlights: list[str] = Field(default_factory=list)


class StrategyReport(BaseModel):
    status: str
    result_count: int
    error: str | None = None
    elapsed: float


class SearchResponse(BaseModel):
    query: str
    final_query: str
    results: list[SearchHit]
    confidence: float
    iterations: int
    result_count: int
    state: str
    index_generation: int
    strategies: dict[str, StrategyReport] = Field(default_factory=dict)
    cached: bool = False
    request_id: str


class LifelogIn(BaseModel):
    doc_id: str | None = None
    title: str = ""
    content: str = Field(min_length=1)
    created_at: datetime
    duration: float = Field(default=0.0, ge=0.0)
    headings: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class IngestRequest(BaseModel):
    documents: list[LifelogIn] = Field(min_length=1)


class IngestResponse(BaseModel):
    ingested: int
    generation: int
    document_count: int


class LifelogOut(BaseModel):
    doc_id: str
    title: str
    content: str
    created_at: datetime
    duration: float
    headings: list[str]
    metadata: dict[str, Any]


class LifelogPage(BaseModel):
    items: list[LifelogOut]
    total: int
    offset: int
    limit: int


class StatsResponse(BaseModel):
    generation: int
    document_count: int
    chunk_count: int
    term_count: int
    vector_count: int
    embedding_dimension: int
    embedding_model: str | None = None


class EmbeddingHealthResponse(BaseModel):
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None
    target_dimension: int | None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None
