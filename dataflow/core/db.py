"""
SQLite-backed entity store.

One table per entity kind, each row holding a JSON document in ``data``.
The store is constructed once at process start and handed to whatever needs
it; every logical unit of work opens its own connection.
"""

import sqlite3
from contextlib import contextmanager
from typing import Any, Generator, List, Sequence

from .config import ensure_db_directory
from .errors import MissingTable, StoreError
from .identifiers import ENTITY_TABLES, Identifier, field_text, table_ref
from .query import ilike_contains, text_match
from ..util.logging import logger

# Expression indexes on frequently filtered document fields
FIELD_INDEXES = {
    "pipeline": ("status", "name"),
    "connection": ("status", "name", "platform", "connection_type"),
    "pipeline_run": ("status", "name", "pipeline_id", "triggered_by"),
    "ingestion_job": ("status", "name", "pipeline_id"),
    "activity_log": ("category", "log_type", "job_id", "connection_id"),
    "connection_prerequisite": ("connection_id", "prereq_type", "status"),
    "pipeline_version": ("pipeline_id",),
}


class EntityStore:
    """Parameterized-query access to the entity tables."""

    def __init__(self, db_path: str, initialize: bool = True):
        self.db_path = str(db_path)
        self._closed = False
        if self.db_path != ":memory:":
            ensure_db_directory(self.db_path)
        if initialize:
            self.init_schema()

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a SQLite connection for one unit of work."""
        if self._closed:
            raise StoreError("Entity store is closed")
        try:
            conn = sqlite3.connect(self.db_path, isolation_level=None)
        except sqlite3.Error as e:
            raise StoreError(str(e))
        conn.row_factory = sqlite3.Row
        conn.create_function("ilike_contains", 2, ilike_contains, deterministic=True)
        conn.create_function("text_match", 2, text_match, deterministic=True)
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """All-or-nothing unit of work: commit on success, roll back on any error."""
        with self.connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise _translate(e)
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as e:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise _translate(e)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        """Run one statement and return its rows."""
        with self.connection() as conn:
            return run(conn, sql, params).fetchall()

    def execute_write(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one data-modifying statement and return the affected row count."""
        with self.connection() as conn:
            return run(conn, sql, params).rowcount

    def init_schema(self):
        """Create entity tables and indexes if they do not exist."""
        with self.transaction() as conn:
            for name in ENTITY_TABLES:
                table = Identifier(name)
                run(conn, f'''
                    CREATE TABLE IF NOT EXISTS {table_ref(table)} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        data TEXT NOT NULL DEFAULT '{{}}',
                        created_date TEXT NOT NULL,
                        updated_date TEXT NOT NULL,
                        created_by TEXT DEFAULT 'system'
                    )
                ''')
                run(conn, f'CREATE INDEX IF NOT EXISTS "idx_{table}_created_date" '
                          f'ON {table_ref(table)} (created_date DESC)')
                run(conn, f'CREATE INDEX IF NOT EXISTS "idx_{table}_updated_date" '
                          f'ON {table_ref(table)} (updated_date DESC)')

                for field_name in FIELD_INDEXES.get(table, ()):
                    field = Identifier(field_name)
                    run(conn, f'CREATE INDEX IF NOT EXISTS "idx_{table}_{field}" '
                              f'ON {table_ref(table)} (({field_text(field)}))')

        logger.debug(f"Entity tables initialized at {self.db_path}")

    def health_check(self) -> bool:
        """Check that the store answers queries."""
        try:
            self.execute("SELECT 1")
            return True
        except StoreError:
            return False

    def close(self):
        """Refuse further work. Connections are per unit of work, so nothing stays open."""
        self._closed = True
        logger.info("Entity store closed")


def _translate(error: sqlite3.Error) -> StoreError:
    message = str(error)
    if message.startswith("no such table"):
        return MissingTable(message)
    return StoreError(message)


def run(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
    """Execute on an open connection, translating driver errors."""
    try:
        return conn.execute(sql, tuple(params))
    except sqlite3.Error as e:
        raise _translate(e)
