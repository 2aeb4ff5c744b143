"""
Module: billing_kernel.db.schema
Responsibility: Structural detection of an unprovisioned store.  The probe
    asks the live database (through ``sqlalchemy.inspect``) which tables and
    columns exist, so "missing schema" never depends on parsing an error
    message.
Architecture position: Kernel > DB.  May import from exceptions and
    logging_config only.

Failure modes:
    - SchemaMissingError naming the table (and column, when the table
      exists but lacks it).
    - AuditSchemaMissingError for the customer history table.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from billing_kernel.exceptions import AuditSchemaMissingError, SchemaMissingError
from billing_kernel.logging_config import get_logger

logger = get_logger("db.schema")

AUDIT_TABLE = "customer_history"


def schema_missing_error(table: str, column: str | None = None) -> SchemaMissingError:
    if table == AUDIT_TABLE:
        return AuditSchemaMissingError(table, column)
    return SchemaMissingError(table, column)


class SchemaProbe:
    """
    Inspects the schema visible to a session's connection.

    Results are cached per probe instance; create one per unit of work so
    a schema change made between runs is picked up.
    """

    def __init__(self, session: Session):
        self._session = session
        self._columns: dict[str, frozenset[str] | None] = {}

    def columns(self, table: str) -> frozenset[str] | None:
        """Column names of ``table``, or None when the table does not exist."""
        if table not in self._columns:
            inspector = inspect(self._session.connection())
            if inspector.has_table(table):
                self._columns[table] = frozenset(
                    col["name"] for col in inspector.get_columns(table)
                )
            else:
                self._columns[table] = None
        return self._columns[table]

    def has_table(self, table: str) -> bool:
        return self.columns(table) is not None

    def has_column(self, table: str, column: str) -> bool:
        cols = self.columns(table)
        return cols is not None and column in cols

    def require(self, table: str, columns: Iterable[str] = ()) -> None:
        """
        Raise unless ``table`` exists with every column in ``columns``.

        Raises:
            SchemaMissingError: First missing table or column found.
        """
        cols = self.columns(table)
        if cols is None:
            logger.error("schema_table_missing", extra={"table": table})
            raise schema_missing_error(table)
        for column in columns:
            if column not in cols:
                logger.error(
                    "schema_column_missing",
                    extra={"table": table, "column": column},
                )
                raise schema_missing_error(table, column)
