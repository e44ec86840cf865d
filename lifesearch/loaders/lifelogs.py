from __future__ import annotations

"""Lifelog document sources and payload conversion."""

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Protocol

from lifesearch.search.types import Document

logger = logging.getLogger(__name__)

_MARKDOWN_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+(.*)$")


class LifelogLoaderError(RuntimeError):
    """Raised when a lifelog payload cannot be converted."""
    pass


class DocumentSource(Protocol):
    """Read-only access to the lifelog corpus."""
    def list_all(self) -> list[Document]:
        raise NotImplementedError

    def get_by_id(self, doc_id: str) -> Document | None:
        raise NotImplementedError


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO strings or epoch seconds into aware UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(float(value), tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise LifelogLoaderError(f"Invalid timestamp: {value}") from exc
    else:
        raise LifelogLoaderError(f"Unsupported timestamp type: {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _markdown_to_text(markdown: str) -> tuple[str, list[str]]:
    headings: list[str] = []
    lines: list[str] = []
    for line in markdown.splitlines():
        match = _MARKDOWN_HEADING_RE.match(line)
        if match:
            headings.append(match.group(1).strip())
            continue
        stripped = line.strip().lstrip(">").strip()
        if stripped:
            lines.append(stripped)
    return "\n".join(lines), headings


def _contents_to_text(contents: list[Any]) -> tuple[str, list[str]]:
    headings: list[str] = []
    lines: list[str] = []
    stack = list(reversed(contents))
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        text = str(node.get("content") or "").strip()
        kind = str(node.get("type") or "").lower()
        if text:
            if kind.startswith("heading"):
                headings.append(text)
            else:
                speaker = node.get("speakerName")
                lines.append(f"{speaker}: {text}" if speaker else text)
        children = node.get("children")
        if isinstance(children, list):
            stack.extend(reversed(children))
    return "\n".join(lines), headings


def document_from_payload(payload: dict[str, Any]) -> Document:
    """Convert a lifelog JSON payload into a Document."""
    doc_id = payload.get("doc_id") or payload.get("id")
    if not doc_id:
        raise LifelogLoaderError("Lifelog payload is missing an id")

    headings: list[str] = [str(item) for item in payload.get("headings") or []]
    content = str(payload.get("content") or "")
    if not content and isinstance(payload.get("contents"), list):
        content, found = _contents_to_text(payload["contents"])
        headings.extend(found)
    if not content and payload.get("markdown"):
        content, found = _markdown_to_text(str(payload["markdown"]))
        headings.extend(found)

    start = parse_timestamp(payload.get("created_at") or payload.get("startTime"))
    end = parse_timestamp(payload.get("endTime"))
    if start is None:
        raise LifelogLoaderError(f"Lifelog {doc_id} is missing a start time")
    duration = payload.get("duration")
    if duration is None:
        duration = (end - start).total_seconds() if end is not None else 0.0

    title = str(payload.get("title") or (headings[0] if headings else ""))
    metadata = dict(payload.get("metadata") or {})
    return Document(
        doc_id=str(doc_id),
        title=title,
        content=content,
        created_at=start,
        duration=max(0.0, float(duration)),
        headings=tuple(heading for heading in headings if heading != title),
        metadata=metadata,
    )


@dataclass
class InMemoryDocumentSource:
    """Document source backed by a dict, used for ingestion and tests."""
    documents: dict[str, Document] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @classmethod
    def from_documents(cls, documents: Iterable[Document]) -> "InMemoryDocumentSource":
        return cls(documents={document.doc_id: document for document in documents})

    def add(self, documents: Iterable[Document]) -> int:
        added = 0
        with self._lock:
            for document in documents:
                self.documents[document.doc_id] = document
                added += 1
        return added

    def list_all(self) -> list[Document]:
        with self._lock:
            items = list(self.documents.values())
        return sorted(items, key=lambda item: (item.created_at, item.doc_id))

    def get_by_id(self, doc_id: str) -> Document | None:
        with self._lock:
            return self.documents.get(doc_id)


@dataclass
class JsonDirectoryDocumentSource:
    """Read lifelogs from *.json files, each holding one payload or a list."""
    directory: Path

    def _payloads(self) -> Iterable[dict[str, Any]]:
        for path in sorted(Path(self.directory).glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise LifelogLoaderError(f"Invalid JSON in {path.name}: {exc}") from exc
            if isinstance(data, dict) and isinstance(data.get("lifelogs"), list):
                data = data["lifelogs"]
            items = data if isinstance(data, list) else [data]
            for item in items:
                if isinstance(item, dict):
                    yield item

    def list_all(self) -> list[Document]:
        documents: list[Document] = []
        for payload in self._payloads():
            documents.append(document_from_payload(payload))
        logger.info(
            "lifelogs_loaded",
            extra={"directory": str(self.directory), "document_count": len(documents)},
        )
        return sorted(documents, key=lambda item: (item.created_at, item.doc_id))

    def get_by_id(self, doc_id: str) -> Document | None:
        for payload in self._payloads():
            if str(payload.get("doc_id") or payload.get("id")) == doc_id:
                return document_from_payload(payload)
        return None
