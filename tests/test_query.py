"""
Sort, pagination and search clause builders.
"""

import pytest
from unittest.mock import patch

from dataflow.core.errors import InvalidCursor, InvalidIdentifier
from dataflow.core.identifiers import Identifier
from dataflow.core.query import (
    DEFAULT_SORT,
    build_search_clause,
    build_sort_clause,
    clamp_page_size,
    cursor_page,
    ilike_contains,
    parse_cursor,
    parse_int,
    parse_skip,
    text_match,
    tokenize,
)


class TestSortClause:

    def test_default_sort(self):
        assert build_sort_clause(None) == DEFAULT_SORT
        assert build_sort_clause("") == DEFAULT_SORT

    def test_timestamp_columns_sort_natively(self):
        assert build_sort_clause("-created_date") == "ORDER BY created_date DESC, id DESC"
        assert build_sort_clause("updated_date") == "ORDER BY updated_date ASC, id ASC"

    def test_document_field_nulls_last(self):
        clause = build_sort_clause("-name")
        assert clause.endswith("DESC NULLS LAST")
        assert "'$.\"name\"'" in clause
        assert build_sort_clause("name").endswith("ASC NULLS LAST")

    def test_field_sanitized(self):
        assert "'$.\"name\"'" in build_sort_clause("na;me")
        with pytest.raises(InvalidIdentifier):
            build_sort_clause("-;;")


class TestPagination:

    @pytest.mark.parametrize("raw,expected", [
        ("25", 25), ("12abc", 12), (" 7", 7), ("-3", -3), (40, 40),
        ("abc", None), ("", None), (None, None), (True, None),
        (3.9, 3), (float("inf"), None), (float("-inf"), None), (float("nan"), None),
    ])
    def test_parse_int(self, raw, expected):
        assert parse_int(raw) == expected

    def test_clamp_defaults(self):
        assert clamp_page_size(None) == 100
        assert clamp_page_size("junk") == 100
        assert clamp_page_size(None, 50) == 50

    @pytest.mark.parametrize("raw", ["0", "-5", 0])
    def test_clamp_low_to_one(self, raw):
        assert clamp_page_size(raw) == 1

    def test_clamp_high_to_maximum(self):
        assert clamp_page_size("5000") == 1000

    def test_clamp_follows_config(self):
        with patch("dataflow.core.config.MAX_PAGE_SIZE", 20):
            assert clamp_page_size("500") == 20

    def test_skip(self):
        assert parse_skip(None) == 0
        assert parse_skip("-4") == 0
        assert parse_skip("30") == 30

    def test_cursor(self):
        assert parse_cursor("42") == 42
        with pytest.raises(InvalidCursor):
            parse_cursor("next")

    def test_cursor_page(self):
        page = cursor_page([{"id": "9"}, {"id": "8"}], 2)
        assert page == {"items": [{"id": "9"}, {"id": "8"}], "nextCursor": "8", "hasMore": True}
        assert cursor_page([], 2) == {"items": [], "nextCursor": None, "hasMore": False}
        assert cursor_page([{"id": "1"}], 2)["hasMore"] is False


class TestSearchClause:

    def test_filters_and_term(self):
        params = []
        where, tail = build_search_clause(Identifier("pipeline"), "load",
                                          {"status": "active", "owner": "", "tier": None}, None, params)
        assert where.startswith("WHERE ")
        assert "text_match(" in where
        assert params == ["active", "load", 50]
        assert tail == f"{DEFAULT_SORT} LIMIT ?3"

    def test_unlisted_kind_searches_whole_document(self):
        params = []
        where, _ = build_search_clause(Identifier("audit_log"), "x", None, 10, params)
        assert where == "WHERE text_match(data, ?1)"
        assert params == ["x", 10]

    def test_no_term_no_filters(self):
        params = []
        where, tail = build_search_clause(Identifier("pipeline"), None, None, "5000", params)
        assert where == ""
        assert params == [1000]


class TestTextMatch:

    def test_stemmed_word_match(self):
        assert text_match("Nightly Load", "load") == 1
        assert text_match("Loading customers", "loads") == 1
        assert text_match("Other", "load") == 0

    def test_inflected_terms(self):
        assert text_match("processes orders", "process") == 1
        assert text_match("Order processing", "processed orders") == 1
        assert text_match("running jobs", "runs") == 1

    def test_stopwords_ignored_in_term(self):
        assert text_match("Nightly Load", "the load") == 1
        assert text_match("Load of customers", "load of the customers") == 1
        assert text_match("Nightly Load", "the") == 0

    def test_every_term_word_required(self):
        assert text_match("nightly load job", "nightly load") == 1
        assert text_match("nightly job", "nightly load") == 0

    def test_empty_inputs(self):
        assert text_match(None, "load") == 0
        assert text_match("load", "") == 0
        assert text_match("load", "!!!") == 0

    def test_tokenize_drops_stopwords(self):
        assert tokenize("The loads of a day") == {"load", "day"}


class TestIlikeContains:

    def test_case_insensitive_substring(self):
        assert ilike_contains("Nightly LOAD", "load") == 1
        assert ilike_contains("Nightly Load", "hourly") == 0

    def test_pattern_characters_are_literal(self):
        assert ilike_contains("C++ build (prod)", "(prod") == 1
        assert ilike_contains("C++ build (prod)", "c++") == 1
        assert ilike_contains("axb", "a.b") == 0
        assert ilike_contains("a.b", "a.b") == 1
        assert ilike_contains("Nightly Load", "^nightly") == 0

    def test_like_wildcards(self):
        assert ilike_contains("Nightly Load", "night%load") == 1
        assert ilike_contains("Nightly Load", "n_ghtly") == 1
        assert ilike_contains("100% done", "100\\%") == 1
        assert ilike_contains("1000 done", "100\\%") == 0

    def test_null_never_matches(self):
        assert ilike_contains(None, "x") == 0
