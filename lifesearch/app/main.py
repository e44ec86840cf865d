from __future__ import annotations

"""FastAPI application entrypoint for the lifelog search service."""

import asyncio
import logging
import uuid
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Query, Request

from lifesearch.app.dependencies import (
    get_document_source,
    get_embedding_config_report,
    get_engine,
    get_history_store,
)
from lifesearch.app.metrics import metrics_middleware, metrics_response, record_search_request
from lifesearch.app.schemas import (
    EmbeddingHealthResponse,
    IngestRequest,
    IngestResponse,
    LifelogOut,
    LifelogPage,
    SearchHit,
    SearchRequest,
    SearchResponse,
    StatsResponse,
    StrategyReport,
)
from lifesearch.app.settings import settings
from lifesearch.loaders.lifelogs import parse_timestamp
from lifesearch.search.errors import ConfigurationError
from lifesearch.search.highlights import build_highlights
from lifesearch.search.types import Document, SearchBundle

logger = logging.getLogger(__name__)

app = FastAPI(title="Lifelog Consensus Search", version="0.1.0")


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logging.getLogger("lifesearch").setLevel(level)


_configure_logging()


def _lifelog_out(document: Document) -> LifelogOut:
    return LifelogOut(
        doc_id=document.doc_id,
        title=document.title,
        content=document.content,
        created_at=document.created_at,
        duration=document.duration,
        headings=list(document.headings),
        metadata=document.metadata,
    )


def _bundle_response(
    payload: dict,
    documents: dict[str, Document],
    query: str,
    request_id: str,
    include_highlights: bool,
    cached: bool,
    limit: int | None,
) -> SearchResponse:
    hits: list[SearchHit] = []
    for item in payload["results"][:limit]:
        document = documents.get(item["docId"])
        highlights: list[str] = []
        if include_highlights and document is not None:
            highlights = build_highlights(document.content, query)
        hits.append(
            SearchHit(
                doc_id=item["docId"],
                title=document.title if document is not None else "",
                created_at=item["createdAt"],
                consensus_score=item["consensusScore"],
                confidence_contribution=item["confidenceContribution"],
                strategies=item["strategies"],
                scores=item["scores"],
                highlights=highlights,
            )
        )
    return SearchResponse(
        query=payload["query"],
        final_query=payload["finalQuery"],
        results=hits,
        confidence=payload["confidence"],
        iterations=payload["iterations"],
        result_count=len(hits),
        state=payload["state"],
        index_generation=payload["indexGeneration"],
        strategies={
            name: StrategyReport(
                status=report["status"],
                result_count=report["resultCount"],
                error=report["error"],
                elapsed=report["elapsed"],
            )
            for name, report in payload["strategies"].items()
        },
        cached=cached,
        request_id=request_id,
    )


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Simple health probe for uptime checks."""
    return {"status": "ok"}


@app.get("/stats", response_model=StatsResponse)
async def stats() -> StatsResponse:
    """Return index generation and sizes."""
    return StatsResponse(**get_engine().stats())


@app.get("/stats/embedding", response_model=EmbeddingHealthResponse)
async def embedding_health() -> EmbeddingHealthResponse:
    """Return embedding configuration health checks."""
    report = get_embedding_config_report()
    return EmbeddingHealthResponse(**report.__dict__)


@app.get("/lifelogs", response_model=LifelogPage)
async def list_lifelogs(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=200),
) -> LifelogPage:
    """List lifelogs, newest first."""
    documents = list(reversed(get_document_source().list_all()))
    page = documents[offset : offset + limit]
    return LifelogPage(
        items=[_lifelog_out(document) for document in page],
        total=len(documents),
        offset=offset,
        limit=limit,
    )


@app.get("/lifelogs/{doc_id}", response_model=LifelogOut)
async def get_lifelog(doc_id: str) -> LifelogOut:
    """Return a single lifelog by id."""
    document = get_document_source().get_by_id(doc_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Lifelog not found")
    return _lifelog_out(document)


@app.post("/ingest", response_model=IngestResponse)
async def ingest(request: IngestRequest, http_request: Request) -> IngestResponse:
    """Add lifelogs to the corpus and publish a rebuilt index."""
    request_id = getattr(http_request.state, "request_id", str(uuid.uuid4()))
    documents = [
        Document(
            doc_id=item.doc_id or str(uuid.uuid4()),
            title=item.title,
            content=item.content,
            created_at=parse_timestamp(item.created_at),
            duration=item.duration,
            headings=tuple(item.headings),
            metadata=item.metadata,
        )
        for item in request.documents
    ]
    source = get_document_source()
    engine = get_engine()
    added = source.add(documents)
    snapshot = await asyncio.to_thread(engine.rebuild_from, source)
    logger.info(
        "ingest_complete",
        extra={
            "request_id": request_id,
            "ingested": added,
            "generation": snapshot.generation,
        },
    )
    return IngestResponse(
        ingested=added,
        generation=snapshot.generation,
        document_count=len(snapshot.documents),
    )


@app.post("/search", response_model=SearchResponse)
async def search(request: SearchRequest, http_request: Request) -> SearchResponse:
    """Run the iterative consensus search for a query."""
    request_id = getattr(http_request.state, "request_id", str(uuid.uuid4()))
    engine = get_engine()
    # One snapshot serves the search and the response documents.
    snapshot = engine.index.current_or_none()
    documents = dict(snapshot.documents) if snapshot is not None else {}

    history = get_history_store()
    if snapshot is not None and history and settings.history_cache_enabled and request.use_cache:
        record = history.lookup(
            request.query,
            snapshot.generation,
            max_age=timedelta(seconds=settings.history_max_age),
        )
        if record is not None:
            logger.info(
                "search_cache_hit",
                extra={"request_id": request_id, "record_id": record.record_id},
            )
            record_search_request(cached=True)
            return _bundle_response(
                record.payload,
                documents,
                request.query,
                request_id,
                request.include_highlights,
                cached=True,
                limit=request.limit,
            )

    try:
        bundle: SearchBundle = await asyncio.to_thread(
            engine.search_against, request.query, snapshot
        )
    except ConfigurationError as exc:
        logger.error("search_misconfigured", extra={"request_id": request_id, "detail": str(exc)})
        raise HTTPException(status_code=500, detail="Search is misconfigured") from exc
    record_search_request(cached=False)
    if history and snapshot is not None:
        history.record(bundle)
    return _bundle_response(
        bundle.to_dict(),
        documents,
        request.query,
        request_id,
        request.include_highlights,
        cached=False,
        limit=request.limit,
    )
