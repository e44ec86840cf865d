from __future__ import annotations

"""Tokenization shared by indexing and query processing."""

import re
from dataclasses import dataclass

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)*")
_WHITESPACE_RE = re.compile(r"\s+")

STOPWORDS = frozenset(
    {
        "a", "about", "after", "again", "all", "also", "am", "an", "and", "any",
        "are", "as", "at", "be", "been", "before", "being", "but", "by", "can",
        "could", "did", "do", "does", "doing", "for", "from", "had", "has", "have",
        "having", "he", "her", "here", "him", "his", "how", "i", "if", "in", "into",
        "is", "it", "its", "just", "me", "my", "of", "on", "or", "our", "out",
        "over", "she", "so", "some", "than", "that", "the", "their", "them", "then",
        "there", "these", "they", "this", "those", "to", "too", "up", "us", "very",
        "was", "we", "were", "what", "when", "where", "which", "while", "who",
        "whom", "why", "will", "with", "would", "you", "your",
    }
)


@dataclass(frozen=True)
class Token:
    """Case-folded token and its position in the source text."""
    text: str
    position: int


def normalize_text(text: str) -> str:
    """Normalize whitespace, line endings and typographic apostrophes."""
    cleaned = text.replace("\r\n", "\n").replace("’", "'").replace("‘", "'")
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def _fold(raw: str) -> str:
    if raw.endswith("'s"):
        raw = raw[:-2]
    return raw.replace("'", "")


def tokenize(text: str) -> list[Token]:
    """Split text into case-folded tokens, folding possessive 's."""
    tokens: list[Token] = []
    position = 0
    for match in _TOKEN_RE.finditer(normalize_text(text).lower()):
        folded = _fold(match.group(0))
        if not folded:
            continue
        tokens.append(Token(text=folded, position=position))
        position += 1
    return tokens


def token_texts(text: str) -> list[str]:
    return [token.text for token in tokenize(text)]


def is_significant(term: str) -> bool:
    return term not in STOPWORDS and (len(term) > 2 or term.isdigit())


def significant_terms(text: str) -> list[str]:
    """Return unique non-stopword terms in order of appearance."""
    seen: set[str] = set()
    terms: list[str] = []
    for term in token_texts(text):
        if term in seen or not is_significant(term):
            continue
        seen.add(term)
        terms.append(term)
    return terms
