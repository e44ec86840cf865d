from __future__ import annotations

"""Deterministic query refinement between search iterations."""

import re
from dataclasses import dataclass, field
from typing import Mapping

from lifesearch.search.errors import ConfigurationError
from lifesearch.search.tokenization import normalize_text, significant_terms, token_texts

_TEMPORAL_QUALIFIER_RE = re.compile(
    r"\b(?:this|last|next|yesterday|today|tonight|tomorrow)\s+"
    r"(?:morning|afternoon|evening|night|week|weekend|month|year)\b"
    r"|\b(?:\d+|a|one|two|three|four|five|six|seven)\s+(?:day|week|month)s?\s+ago\b"
    r"|\b(?:on\s+)?(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b"
    r"|\b(?:today|yesterday|tonight|tomorrow|recently|earlier)\b"
    r"|\b(?:in the\s+)?(?:morning|afternoon|evening)\b"
    r"|\b\d{4}-\d{2}-\d{2}\b|\b\d{1,2}/\d{1,2}/\d{2,4}\b",
    re.IGNORECASE,
)
_DANGLING_PUNCT_RE = re.compile(r"\s+([?!.,;])")


class QueryRewriter:
    """Base class for query rewriters."""
    def rewrite(self, query: str) -> str:
        """Return a rewritten query or the original if unchanged."""
        raise NotImplementedError


@dataclass(frozen=True)
class NoopRewriter(QueryRewriter):
    """Rewriter that returns the input unchanged."""
    def rewrite(self, query: str) -> str:
        return query


@dataclass(frozen=True)
class RuleBasedRewriter(QueryRewriter):
    """Apply the first refinement step that changes the query.

    Steps, in order: expand a recognised entity alias, strip temporal
    qualifiers, reduce to significant keywords.
    """
    aliases: Mapping[str, str] = field(default_factory=dict)

    def rewrite(self, query: str) -> str:
        cleaned = normalize_text(query)
        for step in (self.expand_aliases, self.strip_temporal, self.keywords_only):
            candidate = step(cleaned)
            if candidate and candidate != cleaned:
                return candidate
        return cleaned

    def expand_aliases(self, query: str) -> str:
        tokens = set(token_texts(query))
        additions: list[str] = []
        for name, alias in sorted(self._pairs()):
            if name in tokens and alias not in tokens and alias not in additions:
                additions.append(alias)
        if not additions:
            return query
        return f"{query} {' '.join(additions)}"

    def strip_temporal(self, query: str) -> str:
        stripped = _TEMPORAL_QUALIFIER_RE.sub(" ", query)
        stripped = _DANGLING_PUNCT_RE.sub(r"\1", normalize_text(stripped)).strip(" ,")
        if not significant_terms(stripped):
            return query
        return stripped

    def keywords_only(self, query: str) -> str:
        return " ".join(significant_terms(query))

    def _pairs(self) -> list[tuple[str, str]]:
        pairs: list[tuple[str, str]] = []
        for name, alias in self.aliases.items():
            left, right = name.strip().lower(), alias.strip().lower()
            if left and right:
                pairs.append((left, right))
                pairs.append((right, left))
        return pairs


def build_rewriter(mode: str, aliases: Mapping[str, str] | None = None) -> QueryRewriter:
    """Return the configured rewriter."""
    normalized = mode.strip().lower()
    if normalized in {"", "rules"}:
        return RuleBasedRewriter(aliases=dict(aliases or {}))
    if normalized in {"none", "noop", "off"}:
        return NoopRewriter()
    raise ConfigurationError(f"Unsupported query rewriter: {mode}")
