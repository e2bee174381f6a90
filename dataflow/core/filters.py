"""
Filter-query compiler.

A filter-query is a Mongo-like document such as::

    {"status": "active",
     "owner": {"$exists": False},
     "$or": [{"name": {"$regex": "load"}}, {"tier": "gold"}]}

It is parsed once into the closed set of condition types below and then
compiled into a WHERE fragment with numbered placeholders (``?1``, ``?2``...)
whose values are appended to a shared parameter list.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .errors import InvalidFilter
from .identifiers import Identifier, field_exists, field_text, sanitize_field_name

OR_KEY = "$or"


@dataclass(frozen=True)
class Equals:
    field: Identifier
    value: str


@dataclass(frozen=True)
class Contains:
    """``$regex``: case-insensitive substring match; ``%`` and ``_`` are wildcards."""
    field: Identifier
    pattern: str


@dataclass(frozen=True)
class In:
    field: Identifier
    values: List[str]


@dataclass(frozen=True)
class NotEquals:
    field: Identifier
    value: str


@dataclass(frozen=True)
class Exists:
    field: Identifier
    present: bool


@dataclass(frozen=True)
class Or:
    branches: List[List[Union[Equals, Contains]]]


Condition = Union[Equals, Contains, In, NotEquals, Exists, Or]


def stringify(value: Any) -> str:
    """String form of a JSON value, as the document text accessor renders it."""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _parse_regex(field: Identifier, pattern: Any) -> Contains:
    return Contains(field, stringify(pattern))


def _parse_operators(field: Identifier, spec: Dict[str, Any]) -> List[Condition]:
    if not spec:
        raise InvalidFilter(f"Empty operator object for '{field}'")

    conditions = []
    for op, operand in spec.items():
        if op == "$regex":
            conditions.append(_parse_regex(field, operand))
        elif op == "$in":
            if not isinstance(operand, list):
                raise InvalidFilter(f"$in for '{field}' must be a list")
            conditions.append(In(field, [stringify(v) for v in operand]))
        elif op == "$ne":
            conditions.append(NotEquals(field, stringify(operand)))
        elif op == "$exists":
            conditions.append(Exists(field, bool(operand)))
        else:
            raise InvalidFilter(f"Unsupported operator '{op}' for '{field}'")
    return conditions


def _parse_or(branches: Any) -> Or:
    if not isinstance(branches, list):
        raise InvalidFilter("$or must be a list of filter objects")

    parsed = []
    for branch in branches:
        if not isinstance(branch, dict):
            raise InvalidFilter("$or branches must be objects")
        conditions = []
        for key, value in branch.items():
            field = sanitize_field_name(key)
            if isinstance(value, dict):
                if set(value) != {"$regex"}:
                    raise InvalidFilter("Only literal values and $regex are supported inside $or")
                conditions.append(_parse_regex(field, value["$regex"]))
            else:
                conditions.append(Equals(field, stringify(value)))
        if conditions:
            parsed.append(conditions)
    return Or(parsed)


def parse_filter_query(query: Optional[Dict[str, Any]]) -> List[Condition]:
    """Parse a wire-level filter document into typed conditions."""
    if not query:
        return []
    if not isinstance(query, dict):
        raise InvalidFilter("Filter query must be an object")

    conditions: List[Condition] = []
    for key, value in query.items():
        if key == OR_KEY:
            or_condition = _parse_or(value)
            if or_condition.branches:
                conditions.append(or_condition)
            continue

        field = sanitize_field_name(key)
        if isinstance(value, dict):
            conditions.extend(_parse_operators(field, value))
        else:
            conditions.append(Equals(field, stringify(value)))
    return conditions


def bind(params: list, value: Any) -> str:
    """Append a value to the shared parameter list and return its placeholder."""
    params.append(value)
    return f"?{len(params)}"


def _compile_condition(condition: Condition, params: list) -> str:
    if isinstance(condition, Equals):
        return f"{field_text(condition.field)} = {bind(params, condition.value)}"
    if isinstance(condition, Contains):
        return f"ilike_contains({field_text(condition.field)}, {bind(params, condition.pattern)})"
    if isinstance(condition, In):
        placeholder = bind(params, json.dumps(condition.values))
        return f"{field_text(condition.field)} IN (SELECT value FROM json_each({placeholder}))"
    if isinstance(condition, NotEquals):
        text = field_text(condition.field)
        return f"({text} IS NULL OR {text} != {bind(params, condition.value)})"
    if isinstance(condition, Exists):
        clause = field_exists(condition.field)
        return clause if condition.present else f"NOT ({clause})"
    if isinstance(condition, Or):
        branches = [
            "(" + " AND ".join(_compile_condition(c, params) for c in branch) + ")"
            for branch in condition.branches
        ]
        return "(" + " OR ".join(branches) + ")"
    raise TypeError(f"Unknown filter condition: {condition!r}")


def compile_filter(conditions: List[Condition], params: list) -> str:
    """Compile parsed conditions into a WHERE fragment ('' when empty)."""
    if not conditions:
        return ""
    return "WHERE " + " AND ".join(_compile_condition(c, params) for c in conditions)


def build_filter_clause(query: Optional[Dict[str, Any]], params: list) -> str:
    return compile_filter(parse_filter_query(query), params)
