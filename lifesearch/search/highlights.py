from __future__ import annotations

"""Snippets around query terms for returned lifelogs."""

import re

from lifesearch.loaders.chunking import split_sentences
from lifesearch.search.tokenization import significant_terms, token_texts


def build_highlights(
    content: str,
    query: str,
    max_snippets: int = 3,
    max_chars: int = 240,
) -> list[str]:
    """Return the sentences that mention the most query terms, marked with [[ ]]."""
    terms = significant_terms(query)
    if not terms or not content.strip():
        return []
    pattern = re.compile(
        r"\b(" + "|".join(re.escape(term) for term in terms) + r")(?:'s)?\b", re.IGNORECASE
    )

    ranked: list[tuple[int, int, str]] = []
    for position, sentence in enumerate(split_sentences(content)):
        present = set(token_texts(sentence)).intersection(terms)
        if present:
            ranked.append((len(present), position, sentence))
    ranked.sort(key=lambda item: (-item[0], item[1]))

    snippets: list[str] = []
    for _, _, sentence in ranked[:max_snippets]:
        if len(sentence) > max_chars:
            sentence = sentence[: max_chars - 3].rstrip() + "..."
        snippets.append(pattern.sub(lambda match: f"[[{match.group(0)}]]", sentence))
    return snippets
