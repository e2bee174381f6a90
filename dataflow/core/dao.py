"""
Entity operations over the store.

Names are resolved and clauses compiled before any statement runs, so
validation failures never reach the database.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from . import config
from .db import EntityStore, run
from .errors import BatchSizeExceeded, EmptyBatch, RecordNotFound
from .filters import bind, build_filter_clause
from .identifiers import ENTITY_TABLES, Identifier, entity_name_to_table, table_ref
from .query import (
    build_search_clause,
    build_sort_clause,
    clamp_page_size,
    cursor_page,
    parse_cursor,
    parse_skip,
)
from .records import format_record, prepare_update
from .schema import EntityRow
from ..util.logging import logger

MAX_RETENTION_DAYS = 365000


def utcnow() -> str:
    """UTC timestamp whose text order matches time order."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _dumps(data: Dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False)


def _parse_id(record_id: Any) -> int:
    try:
        return int(str(record_id).strip())
    except ValueError:
        raise RecordNotFound()


def _format_rows(rows, table: str) -> List[Dict[str, Any]]:
    return [format_record(EntityRow.from_row(r), table) for r in rows]


def list_records(store: EntityStore, entity_name: str, sort: Optional[str] = None,
                 limit: Any = None, skip: Any = None) -> List[Dict[str, Any]]:
    """Offset pagination in sort order."""
    table = entity_name_to_table(entity_name)
    order = build_sort_clause(sort)
    rows = store.execute(
        f"SELECT * FROM {table_ref(table)} {order} LIMIT ?1 OFFSET ?2",
        [clamp_page_size(limit), parse_skip(skip)]
    )
    return _format_rows(rows, table)


def list_records_by_cursor(store: EntityStore, entity_name: str, cursor: Any = None,
                           limit: Any = None) -> Dict[str, Any]:
    """Descending-id pagination; ``cursor`` of None starts from the newest row."""
    table = entity_name_to_table(entity_name)
    page_size = clamp_page_size(limit)

    if cursor is None:
        rows = store.execute(
            f"SELECT * FROM {table_ref(table)} ORDER BY id DESC LIMIT ?1",
            [page_size]
        )
    else:
        rows = store.execute(
            f"SELECT * FROM {table_ref(table)} WHERE id < ?1 ORDER BY id DESC LIMIT ?2",
            [parse_cursor(cursor), page_size]
        )
    return cursor_page(_format_rows(rows, table), page_size)


def filter_records(store: EntityStore, entity_name: str, query: Optional[Dict[str, Any]] = None,
                   sort: Optional[str] = None, limit: Any = None,
                   skip: Any = None) -> List[Dict[str, Any]]:
    """Filtered, sorted, offset-paginated list."""
    table = entity_name_to_table(entity_name)
    params: list = []
    where = build_filter_clause(query, params)
    order = build_sort_clause(sort)
    limit_ref = bind(params, clamp_page_size(limit))
    offset_ref = bind(params, parse_skip(skip))

    rows = store.execute(
        f"SELECT * FROM {table_ref(table)} {where} {order} LIMIT {limit_ref} OFFSET {offset_ref}",
        params
    )
    return _format_rows(rows, table)


def get_record(store: EntityStore, entity_name: str, record_id: Any) -> Dict[str, Any]:
    table = entity_name_to_table(entity_name)
    rows = store.execute(f"SELECT * FROM {table_ref(table)} WHERE id = ?1", [_parse_id(record_id)])
    if not rows:
        raise RecordNotFound()
    return format_record(EntityRow.from_row(rows[0]), table)


def get_raw_record(store: EntityStore, table: Identifier, record_id: Any) -> Optional[EntityRow]:
    """Unredacted row, for collaborators that need the stored secrets."""
    try:
        parsed = _parse_id(record_id)
    except RecordNotFound:
        return None
    rows = store.execute(f"SELECT * FROM {table_ref(table)} WHERE id = ?1", [parsed])
    return EntityRow.from_row(rows[0]) if rows else None


def _split_created_by(item: Dict[str, Any]):
    data = dict(item)
    created_by = data.pop("created_by", None) or config.DEFAULT_CREATED_BY
    return data, str(created_by)


def _insert(conn, table: Identifier, data: Dict[str, Any], created_by: str, now: str) -> EntityRow:
    cursor = run(
        conn,
        f"INSERT INTO {table_ref(table)} (data, created_date, updated_date, created_by) "
        f"VALUES (?1, ?2, ?2, ?3)",
        [_dumps(data), now, created_by]
    )
    return EntityRow(id=cursor.lastrowid, data=data, created_date=now,
                     updated_date=now, created_by=created_by)


def create_record(store: EntityStore, entity_name: str, item: Dict[str, Any]) -> Dict[str, Any]:
    table = entity_name_to_table(entity_name)
    data, created_by = _split_created_by(item)

    with store.connection() as conn:
        row = _insert(conn, table, data, created_by, utcnow())

    logger.log_entity_operation("create", table, row.id)
    return format_record(row, table)


def create_records(store: EntityStore, entity_name: str, items: Any) -> List[Dict[str, Any]]:
    """Insert a batch in one transaction; any failure leaves no rows behind."""
    table = entity_name_to_table(entity_name)
    if not items or not isinstance(items, list):
        raise EmptyBatch("Request body must contain a non-empty items array")
    if len(items) > config.MAX_BATCH_SIZE:
        raise BatchSizeExceeded(f"Batch size limited to {config.MAX_BATCH_SIZE} items")

    now = utcnow()
    rows = []
    with store.transaction() as conn:
        for item in items:
            data, created_by = _split_created_by(item)
            rows.append(_insert(conn, table, data, created_by, now))

    logger.log_entity_operation("batch_create", table, details={"count": len(rows)})
    return [format_record(row, table) for row in rows]


def update_record(store: EntityStore, entity_name: str, record_id: Any,
                  payload: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow-merge ``payload`` into the stored document."""
    table = entity_name_to_table(entity_name)
    parsed_id = _parse_id(record_id)

    with store.transaction() as conn:
        rows = run(conn, f"SELECT * FROM {table_ref(table)} WHERE id = ?1", [parsed_id]).fetchall()
        if not rows:
            raise RecordNotFound()
        row = EntityRow.from_row(rows[0])

        row.data.update(prepare_update(table, payload, row.data))
        row.updated_date = utcnow()
        run(
            conn,
            f"UPDATE {table_ref(table)} SET data = ?1, updated_date = ?2 WHERE id = ?3",
            [_dumps(row.data), row.updated_date, parsed_id]
        )

    logger.log_entity_operation("update", table, parsed_id)
    return format_record(row, table)


def delete_record(store: EntityStore, entity_name: str, record_id: Any) -> bool:
    """Hard delete. Returns whether a row was removed."""
    table = entity_name_to_table(entity_name)
    try:
        parsed_id = _parse_id(record_id)
    except RecordNotFound:
        return False

    deleted = store.execute_write(f"DELETE FROM {table_ref(table)} WHERE id = ?1", [parsed_id])
    logger.log_entity_operation("delete", table, parsed_id, details={"deleted": deleted})
    return deleted > 0


def search_records(store: EntityStore, table: Identifier, search_term: Optional[str] = None,
                   filters: Optional[Dict[str, Any]] = None, limit: Any = None) -> List[Dict[str, Any]]:
    """Flat equality filters plus one full-text clause, newest first."""
    params: list = []
    where, tail = build_search_clause(table, search_term, filters, limit, params)
    rows = store.execute(f"SELECT * FROM {table_ref(table)} {where} {tail}", params)
    return _format_rows(rows, table)


def retention_days(days: Any = None) -> int:
    """Effective purge window: ``days`` when a positive integer, else the configured default."""
    try:
        days = int(days)
    except (TypeError, ValueError, OverflowError):
        days = 0
    return days if days > 0 else config.PURGE_LOGS_DEFAULT_DAYS


def purge_activity_logs(store: EntityStore, days: Any = None) -> int:
    """Delete activity logs older than ``days`` days."""
    days = retention_days(days)

    # Capped so the cutoff stays a valid datetime
    window = timedelta(days=min(days, MAX_RETENTION_DAYS))
    cutoff = (datetime.now(timezone.utc) - window).isoformat(timespec="microseconds")
    table = entity_name_to_table("ActivityLog")
    deleted = store.execute_write(
        f"DELETE FROM {table_ref(table)} WHERE created_date < ?1", [cutoff]
    )
    logger.log_entity_operation("purge", table, details={"days": days, "deleted": deleted})
    return deleted


def describe_data_model(store: EntityStore) -> Dict[str, Any]:
    """Columns and indexes of every entity table."""
    tables = []
    indexes = []
    with store.connection() as conn:
        for name in ENTITY_TABLES:
            table = Identifier(name)
            columns = run(conn, f"PRAGMA table_info({table_ref(table)})").fetchall()
            if not columns:
                continue
            tables.append({
                "name": name,
                "columns": [
                    {
                        "column_name": c["name"],
                        "data_type": c["type"],
                        "is_nullable": "NO" if c["notnull"] or c["pk"] else "YES",
                    }
                    for c in columns
                ],
            })

        placeholders = ", ".join(f"?{i}" for i in range(1, len(ENTITY_TABLES) + 1))
        for r in run(
            conn,
            f"SELECT tbl_name, name, sql FROM sqlite_master "
            f"WHERE type = 'index' AND tbl_name IN ({placeholders}) ORDER BY tbl_name, name",
            ENTITY_TABLES
        ).fetchall():
            indexes.append({"tablename": r["tbl_name"], "indexname": r["name"], "indexdef": r["sql"]})

    return {"tables": tables, "indexes": indexes}
