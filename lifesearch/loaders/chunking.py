from __future__ import annotations

"""Sentence-window chunking with temporal and entity annotations."""

import re
from typing import Iterable

from lifesearch.search.tokenization import normalize_text
from lifesearch.search.types import Chunk, Document

_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9\"'(])")
_CAPITALIZED_RE = re.compile(r"\b([A-Z][a-z]+)\b")

_TEMPORAL_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("time_of_day", re.compile(r"\b(morning|afternoon|evening|night|midnight|noon)\b", re.I)),
    ("clock_time", re.compile(r"\b\d{1,2}(?::\d{2})?\s?(?:am|pm)\b|\b\d{1,2}:\d{2}\b", re.I)),
    ("relative_day", re.compile(r"\b(today|yesterday|tomorrow|tonight)\b", re.I)),
    (
        "weekday",
        re.compile(r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", re.I),
    ),
    (
        "month",
        re.compile(
            r"\b(january|february|march|april|may|june|july|august|september|"
            r"october|november|december)\b",
            re.I,
        ),
    ),
    ("relative_period", re.compile(r"\b(last|next|this)\s+(week|month|year|weekend)\b", re.I)),
    ("date", re.compile(r"\b\d{4}-\d{2}-\d{2}\b|\b\d{1,2}/\d{1,2}/\d{2,4}\b")),
)

PLACE_WORDS = frozenset(
    {"house", "home", "office", "work", "school", "gym", "store", "park", "restaurant", "cafe"}
)
_NON_ENTITY_WORDS = frozenset(
    {
        "i", "the", "a", "an", "and", "but", "so", "then", "we", "he", "she", "they",
        "it", "this", "that", "yes", "no", "okay", "ok", "well", "oh", "um", "uh",
        "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
        "today", "yesterday", "tomorrow", "what", "where", "when", "who", "why", "how",
        "which", "did", "does", "was", "is", "can", "show", "find", "tell", "remind",
        "hey", "hi", "yeah",
    }
)


def split_sentences(text: str) -> list[str]:
    """Split normalized text into sentences."""
    cleaned = normalize_text(text)
    if not cleaned:
        return []
    return [sentence.strip() for sentence in _SENTENCE_RE.split(cleaned) if sentence.strip()]


def extract_temporal_context(text: str) -> tuple[str, ...]:
    """Return temporal tags such as 'time_of_day:afternoon' found in text."""
    tags: list[str] = []
    for label, pattern in _TEMPORAL_PATTERNS:
        for match in pattern.finditer(text):
            tag = f"{label}:{normalize_text(match.group(0)).lower()}"
            if tag not in tags:
                tags.append(tag)
    return tuple(tags)


def extract_entities(text: str, known_entities: Iterable[str] = ()) -> tuple[str, ...]:
    """Return known entities, capitalised names and place words mentioned in text."""
    lowered = normalize_text(text).lower()
    found: list[str] = []
    for entity in known_entities:
        name = entity.strip().lower()
        if name and re.search(rf"\b{re.escape(name)}\b", lowered) and name not in found:
            found.append(name)
    for match in _CAPITALIZED_RE.finditer(normalize_text(text)):
        name = match.group(1).lower()
        if name in _NON_ENTITY_WORDS or name in found:
            continue
        found.append(name)
    for word in sorted(PLACE_WORDS):
        if re.search(rf"\b{word}\b", lowered) and word not in found:
            found.append(word)
    return tuple(found)


def _split_long(text: str, max_chars: int) -> list[str]:
    if len(text) <= max_chars:
        return [text]
    pieces: list[str] = []
    start = 0
    while start < len(text):
        end = min(len(text), start + max_chars)
        if end < len(text):
            space = text.rfind(" ", start, end)
            if space > start:
                end = space
        piece = text[start:end].strip()
        if piece:
            pieces.append(piece)
        start = end
    return pieces


def chunk_text(
    text: str,
    sentences_per_chunk: int = 5,
    overlap: int = 2,
    min_chars: int = 50,
    max_chars: int = 2000,
) -> list[str]:
    """Group sentences into overlapping windows."""
    sentences = split_sentences(text)
    if not sentences:
        return []
    if sentences_per_chunk <= 0:
        sentences_per_chunk = 1
    if overlap >= sentences_per_chunk:
        overlap = max(0, sentences_per_chunk - 1)
    step = sentences_per_chunk - overlap

    windows: list[str] = []
    start = 0
    while start < len(sentences):
        window = " ".join(sentences[start : start + sentences_per_chunk])
        if len(window) < min_chars and windows:
            windows[-1] = f"{windows[-1]} {window}"
        else:
            windows.append(window)
        if start + sentences_per_chunk >= len(sentences):
            break
        start += step

    chunks: list[str] = []
    for window in windows:
        chunks.extend(_split_long(window, max_chars))
    return chunks


def chunk_document(
    document: Document,
    sentences_per_chunk: int = 5,
    overlap: int = 2,
    min_chars: int = 50,
    max_chars: int = 2000,
    known_entities: Iterable[str] = (),
) -> list[Chunk]:
    """Chunk a document into annotated chunks that point back to it."""
    entities = tuple(known_entities)
    texts = chunk_text(
        document.content,
        sentences_per_chunk=sentences_per_chunk,
        overlap=overlap,
        min_chars=min_chars,
        max_chars=max_chars,
    )
    if not texts and document.title:
        texts = [normalize_text(document.title)]
    return [
        Chunk(
            chunk_id=f"{document.doc_id}#{position}",
            parent_id=document.doc_id,
            position=position,
            content=text,
            temporal_context=extract_temporal_context(text),
            entities=extract_entities(text, entities),
        )
        for position, text in enumerate(texts)
    ]
