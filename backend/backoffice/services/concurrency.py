# Overview: Service-layer helpers for locking and bounding write transactions.

from __future__ import annotations

import time

from sqlalchemy import text

from ..extensions import db


class TransactionTimeoutError(Exception):
    """Raised when a write transaction outlives its time budget."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    takes the database write lock up front there instead.
    """
    return query.with_for_update()


def begin_write_transaction(timeout_seconds: float) -> None:
    """
    Open the current session's transaction for writing under a time budget.

    - SQLite: BEGIN IMMEDIATE (reserve the write lock before the first read)
      and wait at most timeout_seconds for a competing writer.
    - PostgreSQL: bound every statement of this transaction.
    """
    connection = db.session.connection()
    timeout_ms = max(1, int(timeout_seconds * 1000))
    dialect = connection.dialect.name

    if dialect == "sqlite":
        connection.exec_driver_sql(f"PRAGMA busy_timeout = {timeout_ms}")
        raw = connection.connection.dbapi_connection
        if not raw.in_transaction:
            connection.exec_driver_sql("BEGIN IMMEDIATE")
    elif dialect == "postgresql":
        db.session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))


class TransactionDeadline:
    """Wall-clock budget for one transaction, checked between its steps."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def check(self, step: str) -> None:
        if time.monotonic() > self.expires_at:
            raise TransactionTimeoutError(
                f"transaction exceeded its {self.seconds:g}s budget while {step}"
            )
