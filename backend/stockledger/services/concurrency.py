# Overview: Row-locking and write-transaction helpers shared by every inventory writer.

from __future__ import annotations

from sqlalchemy import text

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    begin_write_transaction() covers SQLite.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the session's transaction as a writer.

    On SQLite this issues BEGIN IMMEDIATE so a second writer blocks until the
    first commits or rolls back. Skipped when the connection is already
    inside a transaction (the caller owns it). Other dialects rely on the
    row locks taken by lock_for_update().
    """
    if db.session.get_bind().dialect.name != "sqlite":
        return
    dbapi_connection = db.session.connection().connection.dbapi_connection
    if getattr(dbapi_connection, "in_transaction", False):
        return
    db.session.execute(text("BEGIN IMMEDIATE"))
