from __future__ import annotations

import pytest

from lifesearch.search.errors import ConfigurationError
from lifesearch.search.rewriter import (
    NoopRewriter,
    RuleBasedRewriter,
    build_rewriter,
)


def test_alias_expansion_works_both_ways() -> None:
    rewriter = RuleBasedRewriter(aliases={"mimi": "grandma"})

    assert rewriter.rewrite("where is Mimi's house") == "where is Mimi's house grandma"
    assert rewriter.rewrite("grandma cake") == "grandma cake mimi"


def test_temporal_qualifiers_are_stripped() -> None:
    rewriter = RuleBasedRewriter()

    assert rewriter.rewrite("where did the kids go this afternoon?") == "where did the kids go?"
    assert rewriter.rewrite("budget meeting yesterday") == "budget meeting"


def test_plain_question_reduces_to_keywords() -> None:
    rewriter = RuleBasedRewriter()

    assert rewriter.rewrite("what did the kids eat") == "kids eat"


def test_keyword_query_is_a_fixed_point() -> None:
    rewriter = RuleBasedRewriter()

    assert rewriter.rewrite("lemon cake") == "lemon cake"
    assert rewriter.rewrite(rewriter.rewrite("lemon cake")) == "lemon cake"


def test_build_rewriter_modes() -> None:
    assert isinstance(build_rewriter("rules"), RuleBasedRewriter)
    assert isinstance(build_rewriter("none"), NoopRewriter)
    with pytest.raises(ConfigurationError):
        build_rewriter("llm")
