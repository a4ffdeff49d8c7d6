"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), running a unit of work inside a single
transaction (``transaction``) and applying migrations on application
start (``init_db``).  SQLite is used as a lightweight embedded
database; switching to another DBMS means replacing the connection
logic and adapting SQL syntax accordingly.

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .config import settings
from .errors import InternalError

logger = logging.getLogger(__name__)


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: users, messages and the per-recipient delivery ledger
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS messages (
            id TEXT PRIMARY KEY,
            sender_id TEXT NOT NULL,
            subject TEXT,
            content TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            FOREIGN KEY(sender_id) REFERENCES users(id)
                ON UPDATE CASCADE ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS message_recipients (
            id TEXT PRIMARY KEY,
            message_id TEXT NOT NULL,
            recipient_id TEXT NOT NULL,
            read INTEGER NOT NULL DEFAULT 0,
            read_at TEXT,
            UNIQUE(message_id, recipient_id),
            FOREIGN KEY(message_id) REFERENCES messages(id)
                ON UPDATE CASCADE ON DELETE CASCADE,
            FOREIGN KEY(recipient_id) REFERENCES users(id)
                ON UPDATE CASCADE ON DELETE CASCADE
        );
        """,
    ),
    # Migration 2: indices for the sent-messages and inbox lookups
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_messages_sender_id ON messages(sender_id);
        CREATE INDEX IF NOT EXISTS idx_message_recipients_recipient_id
            ON message_recipients(recipient_id);
        CREATE INDEX IF NOT EXISTS idx_message_recipients_message_id
            ON message_recipients(message_id);
        """,
    ),
]


def utc_now() -> str:
    """Current UTC time in the storage format.

    Fixed microsecond precision keeps every value the same width, so
    ``ORDER BY`` on the text column is chronological.
    """
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path, use it directly.
    Otherwise resolve it relative to the project root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent.parent
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` so columns can be accessed by
    name.  Foreign key enforcement is switched on for the lifetime of
    the connection; SQLite leaves it off by default, which would
    silently bypass the ``REFERENCES`` clauses of the schema.
    """
    conn = sqlite3.connect(get_database_path(), timeout=settings.db_timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


@contextmanager
def transaction(immediate: bool = True) -> Iterator[sqlite3.Connection]:
    """Run a block of statements as one all-or-nothing transaction.

    By default the transaction is opened with ``BEGIN IMMEDIATE`` so
    the write lock is taken before the first read; a concurrent writer
    waits (up to ``settings.db_timeout``) instead of interleaving with
    us.  Read-only callers pass ``immediate=False`` to get a plain
    snapshot across several queries.  Any exception raised inside the
    block rolls back every statement and is re-raised unchanged.
    """
    conn = get_connection()
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        yield conn
        conn.execute("COMMIT")
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate ``sqlite3.Error`` raised in the block into ``InternalError``.

    ``operation`` names what was being done, e.g. ``"message sending"``;
    it ends up in the error message returned to the caller.  The
    original exception is logged with its traceback and chained.
    """
    try:
        yield
    except sqlite3.Error as exc:
        logger.exception("Database failure during %s", operation)
        raise InternalError(f"Internal server error during {operation}.") from exc


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations defined in
    ``MIGRATIONS``.  To change the schema, append a migration with an
    incremented version number.
    """
    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                logger.info("Applied database migration %s", version)
                current_version = version
