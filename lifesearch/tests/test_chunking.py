from __future__ import annotations

"""Chunking behavior tests."""

from datetime import datetime, timezone

from lifesearch.loaders.chunking import (
    chunk_document,
    chunk_text,
    extract_entities,
    extract_temporal_context,
    split_sentences,
)
from lifesearch.search.types import Document


def test_chunk_document_windows_overlap_and_point_to_parent() -> None:
    """Seven sentences with a 5/2 window produce two overlapping chunks."""
    sentences = [f"Sentence number {index} talks about the garden party." for index in range(7)]
    document = Document(
        doc_id="party",
        content=" ".join(sentences),
        created_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )

    chunks = chunk_document(document, sentences_per_chunk=5, overlap=2)

    assert [chunk.chunk_id for chunk in chunks] == ["party#0", "party#1"]
    assert all(chunk.parent_id == "party" for chunk in chunks)
    assert chunks[0].content.startswith("Sentence number 0")
    assert chunks[1].content.startswith("Sentence number 3")


def test_short_trailing_window_is_merged() -> None:
    text = "This is a reasonably long opening sentence for the transcript. Ok. Bye."

    chunks = chunk_text(text, sentences_per_chunk=1, overlap=0, min_chars=50)

    assert len(chunks) == 1
    assert chunks[0].endswith("Ok. Bye.")


def test_long_windows_are_split_on_spaces() -> None:
    text = " ".join(["word"] * 100) + "."

    chunks = chunk_text(text, max_chars=60)

    assert len(chunks) > 1
    assert all(len(chunk) <= 60 for chunk in chunks)


def test_temporal_context_and_entities() -> None:
    text = "We met Priya at the office on Tuesday afternoon around 3pm. Mimi called yesterday."

    tags = extract_temporal_context(text)
    entities = extract_entities(text, known_entities=["mimi"])

    assert "time_of_day:afternoon" in tags
    assert "weekday:tuesday" in tags
    assert "clock_time:3pm" in tags
    assert "relative_day:yesterday" in tags
    assert entities[0] == "mimi"
    assert "priya" in entities
    assert "office" in entities
    assert "we" not in entities


def test_split_sentences_ignores_empty_text() -> None:
    assert split_sentences("   ") == []
