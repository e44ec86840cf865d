from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ["EMBEDDING_DIMENSION"] = "256"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("LIFESEARCH_DATA_DIR", None)
os.environ.pop("LIFESEARCH_HISTORY_DB_URI", None)
os.environ.pop("LIFESEARCH_STRATEGY_WEIGHTS", None)
os.environ.setdefault("LIFESEARCH_METRICS_ENABLED", "true")

from lifesearch.search.types import Document  # noqa: E402

NOW = datetime(2024, 6, 14, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def lifelogs() -> list[Document]:
    return [
        Document(
            doc_id="mimi-visit",
            title="Afternoon at Mimi's",
            content=(
                "The kids went to Mimi's house this afternoon. "
                "Mimi baked a lemon cake and everyone played in the garden."
            ),
            created_at=datetime(2024, 6, 14, 15, 30, tzinfo=timezone.utc),
            duration=3600.0,
        ),
        Document(
            doc_id="budget-call",
            title="Quarterly budget review",
            content=(
                "We reviewed the quarterly budget with the finance team. "
                "Marketing spend needs to drop by ten percent next quarter."
            ),
            created_at=datetime(2024, 6, 10, 9, 0, tzinfo=timezone.utc),
            duration=1800.0,
        ),
        Document(
            doc_id="dentist",
            title="Dentist appointment",
            content=(
                "Dentist appointment on Tuesday morning. "
                "The hygienist said to floss more and book a cleaning in six months."
            ),
            created_at=datetime(2024, 6, 11, 8, 15, tzinfo=timezone.utc),
            duration=900.0,
        ),
    ]
