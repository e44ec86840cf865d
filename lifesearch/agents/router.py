from __future__ import annotations

"""Rule-based query classification and strategy selection."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping

from lifesearch.loaders.chunking import extract_temporal_context
from lifesearch.search.tokenization import (
    STOPWORDS,
    normalize_text,
    significant_terms,
    token_texts,
)
from lifesearch.search.types import (
    DEFAULT_STRATEGY_WEIGHTS,
    QueryClassification,
    QueryType,
    StrategyName,
)

LOOKUP_INTERROGATIVES = frozenset({"where", "when", "who"})
INTERROGATIVES = frozenset(
    {"what", "where", "when", "who", "whom", "why", "how", "which", "did", "does", "do",
     "was", "were", "is", "are", "can", "could", "should"}
)
_MULTI_PART_RE = re.compile(
    r";|\band also\b|\band then\b|\bas well as\b|\band (?:what|where|when|who|how|why)\b"
)
_UPPER_CONJUNCTION_RE = re.compile(r"\s(?:AND|OR)\s")
_AGO_RE = re.compile(r"\b(\d+|a|one|two|three|four|five|six|seven)\s+(day|week|month)s?\s+ago\b")
_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_US_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
_TIME_OF_DAY_RE = re.compile(r"\bthis (morning|afternoon|evening)\b|\btonight\b")
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_NUMBER_WORDS = {"a": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6, "seven": 7}


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _day_range(day: datetime) -> tuple[datetime, datetime]:
    start = _start_of_day(day)
    return start, start + timedelta(days=1)


def _month_start(moment: datetime) -> datetime:
    return _start_of_day(moment).replace(day=1)


def extract_time_range(query: str, now: datetime) -> tuple[datetime, datetime] | None:
    """Resolve relative or absolute date phrases to a half-open [start, end) range."""
    lowered = normalize_text(query).lower()
    today_start, today_end = _day_range(now)

    if "yesterday" in lowered:
        return today_start - timedelta(days=1), today_start
    if "today" in lowered or _TIME_OF_DAY_RE.search(lowered):
        return today_start, today_end
    match = _AGO_RE.search(lowered)
    if match:
        amount = _NUMBER_WORDS.get(match.group(1)) or int(match.group(1))
        unit = {"day": 1, "week": 7, "month": 30}[match.group(2)]
        return _day_range(now - timedelta(days=amount * unit))
    if "this week" in lowered:
        return today_start - timedelta(days=now.weekday()), today_end
    if "last week" in lowered:
        week_start = today_start - timedelta(days=now.weekday())
        return week_start - timedelta(days=7), week_start
    if "this month" in lowered:
        return _month_start(now), today_end
    if "last month" in lowered:
        month_start = _month_start(now)
        return _month_start(month_start - timedelta(days=1)), month_start
    match = _ISO_DATE_RE.search(lowered)
    if match:
        try:
            day = now.replace(
                year=int(match.group(1)), month=int(match.group(2)), day=int(match.group(3))
            )
        except ValueError:
            return None
        return _day_range(day)
    match = _US_DATE_RE.search(lowered)
    if match:
        try:
            day = now.replace(
                year=int(match.group(3)), month=int(match.group(1)), day=int(match.group(2))
            )
        except ValueError:
            return None
        return _day_range(day)
    for index, name in enumerate(_WEEKDAYS):
        if re.search(rf"\b{name}\b", lowered):
            delta = (now.weekday() - index) % 7
            return _day_range(now - timedelta(days=delta))
    return None


@dataclass
class QueryRouter:
    """Classify queries and map them to strategy subsets with fusion weights."""
    known_entities: tuple[str, ...] = ()
    weights: Mapping[StrategyName, float] = field(
        default_factory=lambda: dict(DEFAULT_STRATEGY_WEIGHTS)
    )

    def classify(
        self,
        query: str,
        known_entities: Iterable[str] = (),
        now: datetime | None = None,
    ) -> QueryClassification:
        """Return routing flags and extracted features for a raw query."""
        cleaned = normalize_text(query)
        lowered = cleaned.lower()
        tokens = token_texts(cleaned)
        keywords = tuple(significant_terms(cleaned))
        moment = now or datetime.now(timezone.utc)

        temporal_terms = list(extract_temporal_context(cleaned))
        for match in _AGO_RE.finditer(lowered):
            temporal_terms.append(f"relative_day:{match.group(0)}")
        time_range = extract_time_range(cleaned, moment)
        has_temporal = bool(temporal_terms) or time_range is not None

        entities = self._match_entities(tokens, (*self.known_entities, *known_entities))
        has_entity = bool(entities)
        is_multi_part = (
            cleaned.count("?") > 1
            or bool(_MULTI_PART_RE.search(lowered))
            or bool(_UPPER_CONJUNCTION_RE.search(cleaned))
        )
        interrogative = bool(INTERROGATIVES.intersection(tokens)) or "?" in cleaned

        if is_multi_part:
            query_type = QueryType.MULTI_PART
        elif has_temporal:
            query_type = QueryType.TEMPORAL
        elif LOOKUP_INTERROGATIVES.intersection(tokens) and has_entity:
            query_type = QueryType.SIMPLE_LOOKUP
        elif keywords and len(keywords) <= 3 and not interrogative:
            query_type = QueryType.KEYWORD
        else:
            query_type = QueryType.SEMANTIC

        return QueryClassification(
            query_type=query_type,
            has_temporal_reference=has_temporal,
            has_named_entity=has_entity,
            is_multi_part=is_multi_part,
            keywords=keywords,
            temporal_terms=tuple(temporal_terms),
            entities=entities,
            time_range=time_range,
        )

    def select_strategies(
        self,
        classification: QueryClassification,
        weights: Mapping[StrategyName, float] | None = None,
    ) -> dict[StrategyName, float]:
        """Return the enabled strategies for a classification, with weights."""
        table = weights if weights is not None else self.weights
        query_type = classification.query_type
        if query_type == QueryType.SIMPLE_LOOKUP:
            names = [StrategyName.FAST_KEYWORD, StrategyName.CONTEXT_AWARE_FILTER]
        elif query_type == QueryType.KEYWORD:
            names = [StrategyName.FAST_KEYWORD]
        elif query_type == QueryType.TEMPORAL:
            names = [
                StrategyName.FAST_KEYWORD,
                StrategyName.VECTOR_SEMANTIC,
                StrategyName.CONTEXT_AWARE_FILTER,
            ]
            if classification.time_range is not None:
                names.append(StrategyName.FAST_DATE)
        elif query_type == QueryType.MULTI_PART:
            names = list(StrategyName)
        else:
            names = [StrategyName.FAST_KEYWORD, StrategyName.VECTOR_SEMANTIC]
        return {name: table.get(name, name.default_weight) for name in names}

    def _match_entities(self, tokens: list[str], known: Iterable[str]) -> tuple[str, ...]:
        vocabulary = {entity.strip().lower() for entity in known if entity.strip()}
        if not vocabulary:
            return ()
        candidates = list(tokens) + [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
        found: list[str] = []
        for candidate in candidates:
            if candidate in STOPWORDS or candidate in found:
                continue
            if candidate in vocabulary:
                found.append(candidate)
        return tuple(found)
