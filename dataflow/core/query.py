"""
Sort, pagination and full-text search clauses for entity queries.
"""

import math
import re
import threading
from functools import lru_cache
from typing import Any, Dict, Optional, Set, Tuple

import snowballstemmer

from . import config
from .errors import InvalidCursor
from .filters import bind, stringify
from .identifiers import Identifier, document_text, field_text, sanitize_field_name

TIMESTAMP_COLUMNS = ("created_date", "updated_date")
DEFAULT_SORT = "ORDER BY created_date DESC, id DESC"

# Fields concatenated into the searchable text, per entity kind
SEARCH_FIELDS = {
    "pipeline": ("name", "description"),
    "connection": ("name", "description", "platform"),
    "activity_log": ("message", "category"),
}

# English stopword list of the Snowball project
STOPWORDS = frozenset("""
    i me my myself we our ours ourselves you your yours yourself yourselves
    he him his himself she her hers herself it its itself they them their
    theirs themselves what which who whom this that these those am is are was
    were be been being have has had having do does did doing a an the and but
    if or because as until while of at by for with about against between into
    through during before after above below to from up down in out on off
    over under again further then once here there when where why how all any
    both each few more most other some such no nor not only own same so than
    too very s t can will just don should now
""".split())

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_WORD = re.compile(r"[^\W_]+")
_local = threading.local()


def parse_int(value: Any) -> Optional[int]:
    """Parse a leading integer the way JS parseInt does; None if there is none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def clamp_page_size(value: Any, fallback: Optional[int] = None) -> int:
    size = parse_int(value)
    if size is None:
        size = fallback or config.DEFAULT_PAGE_SIZE
    return min(max(1, size), config.MAX_PAGE_SIZE)


def parse_skip(value: Any) -> int:
    return max(0, parse_int(value) or 0)


def parse_cursor(value: Any) -> int:
    cursor = parse_int(value)
    if cursor is None:
        raise InvalidCursor("Invalid cursor")
    return cursor


def build_sort_clause(sort: Optional[str]) -> str:
    """ORDER BY for a sort token: 'field' ascending, '-field' descending."""
    if not sort:
        return DEFAULT_SORT

    descending = sort.startswith("-")
    field = sanitize_field_name(sort[1:] if descending else sort)
    direction = "DESC" if descending else "ASC"

    if field in TIMESTAMP_COLUMNS:
        return f"ORDER BY {field} {direction}, id {direction}"
    return f"ORDER BY {field_text(field)} {direction} NULLS LAST"


def cursor_page(items: list, page_size: int) -> Dict[str, Any]:
    """Wrap one page of formatted records in the cursor response shape."""
    return {
        "items": items,
        "nextCursor": items[-1]["id"] if items else None,
        "hasMore": len(items) == page_size,
    }


def search_expression(table: str) -> str:
    """Searchable text for an entity kind; whole document for unlisted kinds."""
    fields = SEARCH_FIELDS.get(table)
    if not fields:
        return document_text()
    parts = [f"coalesce({field_text(Identifier(f))}, '')" for f in fields]
    return " || ' ' || ".join(parts)


def build_search_clause(table: str, search_term: Optional[str],
                        filters: Optional[Dict[str, Any]], limit: Any,
                        params: list) -> Tuple[str, str]:
    """
    Compose the WHERE and ORDER/LIMIT tails of a search query.

    Filters are flat equality only; the search term is matched against the
    per-kind text expression with ``text_match``. Returns (where, tail).
    """
    conditions = []

    for key, value in (filters or {}).items():
        if value is None or value == "":
            continue
        field = sanitize_field_name(key)
        conditions.append(f"{field_text(field)} = {bind(params, stringify(value))}")

    if search_term:
        conditions.append(f"text_match({search_expression(table)}, {bind(params, str(search_term))})")

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    page_size = clamp_page_size(limit, config.SEARCH_DEFAULT_LIMIT)
    tail = f"{DEFAULT_SORT} LIMIT {bind(params, page_size)}"
    return where, tail


def _stemmer():
    # Stemmer objects keep state between calls; one per worker thread
    stemmer = getattr(_local, "stemmer", None)
    if stemmer is None:
        stemmer = _local.stemmer = snowballstemmer.stemmer("english")
    return stemmer


def tokenize(text: str) -> Set[str]:
    """Stemmed English lexemes of ``text``, stopwords removed."""
    words = [w for w in _WORD.findall(text.lower()) if w not in STOPWORDS]
    return set(_stemmer().stemWords(words))


def text_match(text: Optional[str], term: Optional[str]) -> int:
    """1 when every lexeme of ``term`` occurs in ``text``; a term of only stopwords matches nothing."""
    if not text or not term:
        return 0
    wanted = tokenize(term)
    if not wanted:
        return 0
    return int(wanted <= tokenize(text))


@lru_cache(maxsize=256)
def _like_pattern(pattern: str) -> re.Pattern:
    parts = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def ilike_contains(value: Optional[str], pattern: Optional[str]) -> int:
    """
    Case-insensitive substring test, ``value ILIKE '%' || pattern || '%'``.

    ``%`` and ``_`` inside the pattern are LIKE wildcards and a backslash
    escapes the next character; everything else is literal text.
    NULL never matches.
    """
    if value is None or pattern is None:
        return 0
    return int(_like_pattern(pattern).search(str(value)) is not None)
