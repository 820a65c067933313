# Overview: Service-layer helpers for locking and serialized writes on the shared datastore.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; use serialize_writes() there.
    """
    return query.with_for_update()


def serialize_writes() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, and pysqlite defers BEGIN until the first DML,
    so a read-then-write workflow can interleave with another writer.
    BEGIN IMMEDIATE makes the read and the write one serialized unit.
    A no-op on other backends and when a transaction is already open.
    """
    connection = db.session.connection()
    if connection.dialect.name != "sqlite":
        return
    dbapi_connection = connection.connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        connection.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a read with retry on transient lock failures.

    Only for idempotent reads; writes surface their failure to the caller.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
