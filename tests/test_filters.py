"""
Filter-query parsing and compilation.
"""

import pytest

from dataflow.core.errors import InvalidFilter, InvalidIdentifier
from dataflow.core.filters import (
    Contains,
    Equals,
    Exists,
    In,
    NotEquals,
    Or,
    build_filter_clause,
    parse_filter_query,
    stringify,
)


class TestParseFilterQuery:
    """Wire documents become typed conditions."""

    def test_empty_and_absent(self):
        assert parse_filter_query(None) == []
        assert parse_filter_query({}) == []

    def test_literal_is_equality(self):
        assert parse_filter_query({"status": "active"}) == [Equals("status", "active")]

    def test_literals_coerced_to_json_text(self):
        conditions = parse_filter_query({"enabled": True, "retries": 3, "owner": None})
        assert conditions == [
            Equals("enabled", "true"),
            Equals("retries", "3"),
            Equals("owner", "null"),
        ]

    def test_operators(self):
        conditions = parse_filter_query({
            "name": {"$regex": "load"},
            "status": {"$in": ["active", 1]},
            "tier": {"$ne": "gold"},
            "owner": {"$exists": False},
        })
        assert conditions == [
            Contains("name", "load"),
            In("status", ["active", "1"]),
            NotEquals("tier", "gold"),
            Exists("owner", False),
        ]

    def test_several_operators_on_one_field(self):
        conditions = parse_filter_query({"status": {"$exists": True, "$ne": "deleted"}})
        assert conditions == [Exists("status", True), NotEquals("status", "deleted")]

    def test_or_branches(self):
        conditions = parse_filter_query({"$or": [{"status": "active"}, {"name": {"$regex": "N%"}}]})
        assert conditions == [Or([[Equals("status", "active")], [Contains("name", "N%")]])]

    def test_regex_operand_taken_literally(self):
        assert parse_filter_query({"name": {"$regex": "(prod"}}) == [Contains("name", "(prod")]
        assert parse_filter_query({"name": {"$regex": "[a-"}}) == [Contains("name", "[a-")]

    def test_empty_or_is_dropped(self):
        assert parse_filter_query({"$or": []}) == []

    @pytest.mark.parametrize("query", [
        {"status": {"$gt": 3}},
        {"status": {}},
        {"status": {"$in": "active"}},
        {"$or": {"status": "active"}},
        {"$or": ["active"]},
        {"$or": [{"status": {"$ne": "active"}}]},
    ])
    def test_malformed_queries_rejected(self, query):
        with pytest.raises(InvalidFilter):
            parse_filter_query(query)

    def test_non_object_rejected(self):
        with pytest.raises(InvalidFilter):
            parse_filter_query(["status"])

    def test_field_names_sanitized(self):
        assert parse_filter_query({"sta-tus": "x"}) == [Equals("status", "x")]
        with pytest.raises(InvalidIdentifier):
            parse_filter_query({"--": "x"})


class TestCompileFilter:
    """Compiled clauses reference a shared, 1-indexed parameter list."""

    def test_no_conditions_no_where(self):
        params = []
        assert build_filter_clause({}, params) == ""
        assert params == []

    def test_single_equality(self):
        params = []
        clause = build_filter_clause({"status": "active"}, params)
        assert clause.startswith("WHERE ")
        assert clause.count("?") == 1
        assert clause.endswith("= ?1")
        assert params == ["active"]

    def test_placeholders_continue_shared_list(self):
        params = ["already", "bound"]
        clause = build_filter_clause({"a": 1, "b": 2}, params)
        assert "?3" in clause and "?4" in clause
        assert params == ["already", "bound", "1", "2"]

    def test_in_binds_one_json_array(self):
        params = []
        clause = build_filter_clause({"status": {"$in": ["a", "b"]}}, params)
        assert "json_each(?1)" in clause
        assert params == ['["a", "b"]']

    def test_values_never_interpolated(self):
        params = []
        clause = build_filter_clause({"name": "x' OR '1'='1"}, params)
        assert "OR '1'='1" not in clause
        assert params == ["x' OR '1'='1"]

    def test_regex_compiles_to_contains_function(self):
        params = []
        clause = build_filter_clause({"name": {"$regex": "load"}}, params)
        assert clause.startswith("WHERE ilike_contains(")
        assert clause.endswith(", ?1)")
        assert params == ["load"]

    def test_or_group_anded_with_top_level(self):
        params = []
        clause = build_filter_clause(
            {"kind": "batch", "$or": [{"status": "a"}, {"status": "b", "tier": "c"}]}, params
        )
        assert " OR " in clause
        assert params == ["batch", "a", "b", "c"]


class TestStringify:

    def test_nested_values_are_compact_json(self):
        assert stringify({"a": [1, 2]}) == '{"a":[1,2]}'

    def test_scalars(self):
        assert stringify(1.5) == "1.5"
        assert stringify("x") == "x"
