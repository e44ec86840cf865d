from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from lifesearch.loaders.lifelogs import (
    InMemoryDocumentSource,
    JsonDirectoryDocumentSource,
    LifelogLoaderError,
    document_from_payload,
    parse_timestamp,
)


def test_parse_timestamp_variants() -> None:
    expected = datetime(2024, 6, 14, 15, 30, tzinfo=timezone.utc)

    assert parse_timestamp("2024-06-14T15:30:00Z") == expected
    assert parse_timestamp("2024-06-14T15:30:00") == expected
    assert parse_timestamp(expected.timestamp()) == expected
    assert parse_timestamp(None) is None
    with pytest.raises(LifelogLoaderError):
        parse_timestamp("last tuesday")


def test_structured_contents_become_transcript_text() -> None:
    payload = {
        "id": "visit",
        "startTime": "2024-06-14T15:00:00Z",
        "endTime": "2024-06-14T16:00:00Z",
        "contents": [
            {"type": "heading1", "content": "Afternoon at Mimi's"},
            {
                "type": "heading2",
                "content": "Cake",
                "children": [
                    {"type": "blockquote", "content": "The cake is ready", "speakerName": "Mimi"},
                    {"type": "blockquote", "content": "Yay!"},
                ],
            },
        ],
    }

    document = document_from_payload(payload)

    assert document.doc_id == "visit"
    assert document.title == "Afternoon at Mimi's"
    assert document.content == "Mimi: The cake is ready\nYay!"
    assert document.headings == ("Cake",)
    assert document.duration == 3600.0


def test_markdown_payload_and_missing_fields() -> None:
    document = document_from_payload(
        {
            "doc_id": "notes",
            "created_at": "2024-06-10T09:00:00+00:00",
            "markdown": "# Budget review\n> Marketing spend drops next quarter.",
        }
    )

    assert document.title == "Budget review"
    assert document.content == "Marketing spend drops next quarter."
    with pytest.raises(LifelogLoaderError):
        document_from_payload({"content": "no id", "created_at": "2024-06-10"})
    with pytest.raises(LifelogLoaderError):
        document_from_payload({"id": "x", "content": "no time"})


def test_json_directory_source(tmp_path) -> None:
    (tmp_path / "day.json").write_text(
        json.dumps(
            {
                "lifelogs": [
                    {"id": "b", "content": "second", "startTime": "2024-06-12T10:00:00Z"},
                    {"id": "a", "content": "first", "startTime": "2024-06-11T10:00:00Z"},
                ]
            }
        ),
        encoding="utf-8",
    )
    source = JsonDirectoryDocumentSource(tmp_path)

    documents = source.list_all()

    assert [document.doc_id for document in documents] == ["a", "b"]
    assert source.get_by_id("b").content == "second"
    assert source.get_by_id("missing") is None


def test_in_memory_source_replaces_by_id(lifelogs) -> None:
    source = InMemoryDocumentSource.from_documents(lifelogs)

    added = source.add(lifelogs[:1])

    assert added == 1
    assert len(source.list_all()) == 3
    assert source.list_all()[0].doc_id == "budget-call"
    assert source.get_by_id("dentist") is lifelogs[2]
