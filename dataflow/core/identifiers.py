"""
Identifier handling for the entity store.

User input reaches query text only as an ``Identifier``: either a field name
that went through ``sanitize_field_name`` or a table name produced by
``entity_name_to_table``. The fragment helpers at the bottom of this module
are the only code allowed to put an identifier into SQL; values always travel
as bound parameters.
"""

import re

from .errors import InvalidIdentifier, UnknownEntity

ENTITY_TABLES = (
    "pipeline",
    "connection",
    "pipeline_run",
    "activity_log",
    "audit_log",
    "ingestion_job",
    "airflow_dag",
    "custom_function",
    "connection_profile",
    "connection_prerequisite",
    "pipeline_version",
    "data_catalog_entry",
    "dag_template",
)

_DISALLOWED_CHARS = re.compile(r"[^A-Za-z0-9_]")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


class Identifier(str):
    """A string that has been validated for interpolation into SQL."""
    __slots__ = ()


def sanitize_field_name(field) -> Identifier:
    """Strip everything outside [A-Za-z0-9_]; fail if nothing is left."""
    sanitized = _DISALLOWED_CHARS.sub("", str(field))
    if not sanitized:
        raise InvalidIdentifier(f"Invalid field name: {field}")
    return Identifier(sanitized)


def camel_to_snake(name: str) -> str:
    """PipelineRun -> pipeline_run, HTTPSource -> http_source."""
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _WORD_BOUNDARY.sub(r"\1_\2", name)
    return name.lower()


def entity_name_to_table(entity_name: str) -> Identifier:
    """Map a public entity name to its table, rejecting unknown kinds."""
    table = camel_to_snake(str(entity_name))
    if table not in ENTITY_TABLES:
        raise UnknownEntity(f"Unknown entity: {entity_name}")
    return Identifier(table)


def _require_identifier(value):
    if not isinstance(value, Identifier):
        raise TypeError(f"expected a validated Identifier, got {type(value).__name__}")
    return value


def _json_path(field):
    return f"'$.\"{_require_identifier(field)}\"'"


def table_ref(table) -> str:
    return f'"{_require_identifier(table)}"'


def field_text(field) -> str:
    """SQL expression for a document field's string form (NULL when absent)."""
    path = _json_path(field)
    return (
        f"CASE json_type(data, {path}) "
        f"WHEN 'true' THEN 'true' WHEN 'false' THEN 'false' "
        f"ELSE CAST(json_extract(data, {path}) AS TEXT) END"
    )


def field_exists(field) -> str:
    """True when the key is present in the document, whatever its value."""
    return f"json_type(data, {_json_path(field)}) IS NOT NULL"


def document_text() -> str:
    """The whole document serialized as text."""
    return "data"
