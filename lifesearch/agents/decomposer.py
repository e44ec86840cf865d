from __future__ import annotations

"""Split multi-part questions into independently searchable sub-queries."""

import logging
import re
from dataclasses import dataclass

from lifesearch.search.tokenization import normalize_text, significant_terms

logger = logging.getLogger(__name__)

_QUESTION_END_RE = re.compile(r"(?<=\?)\s*")
_SEPARATOR_RE = re.compile(
    r"\s*(?:;"
    r"|(?i:\band also\b|\band then\b|\bas well as\b)"
    r"|\b(?:AND|OR)\b"
    r"|(?i:\band\b)(?=\s+(?i:what|where|when|who|how|why)\b)"
    r")\s*"
)
_SHARED_TEMPORAL_RE = re.compile(
    r"\b(?:today|yesterday|tonight"
    r"|this (?:morning|afternoon|evening|week|month)"
    r"|last (?:week|month))\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class QueryDecomposer:
    """Break a compound query on the separators that mark it multi-part.

    A temporal qualifier stated once applies to every part that has none of
    its own, so "what did we eat yesterday and where did we go" searches
    "where did we go yesterday" as its second part.
    """
    max_parts: int = 4

    def decompose(self, query: str) -> tuple[str, ...]:
        """Return the sub-queries, or the query alone when it does not split."""
        cleaned = normalize_text(query)
        pieces = [
            piece.strip(" ,.")
            for question in _QUESTION_END_RE.split(cleaned)
            for piece in _SEPARATOR_RE.split(question)
        ]
        pieces = [piece for piece in pieces if piece]
        shared = _SHARED_TEMPORAL_RE.search(cleaned)
        if shared is not None and len(pieces) > 1:
            pieces = [self._with_temporal(piece, shared.group(0)) for piece in pieces]

        parts: list[str] = []
        for piece in pieces:
            if not significant_terms(piece):
                continue
            if piece.lower() not in {existing.lower() for existing in parts}:
                parts.append(piece)
        if len(parts) < 2:
            return (cleaned,)
        if len(parts) > self.max_parts:
            logger.info(
                "query_parts_truncated",
                extra={"part_count": len(parts), "max_parts": self.max_parts},
            )
            parts = parts[: self.max_parts]
        return tuple(parts)

    def _with_temporal(self, part: str, phrase: str) -> str:
        if _SHARED_TEMPORAL_RE.search(part):
            return part
        if part.endswith("?"):
            return f"{part[:-1].rstrip()} {phrase}?"
        return f"{part} {phrase}"
