"""
Translation of driver-level failures into the kernel's typed exceptions.

``sqlalchemy.exc`` errors are classified by SQLSTATE where the driver
reports one (PostgreSQL: ``42P01`` undefined table, ``42703`` undefined
column) and by exception class otherwise:

    ProgrammingError 42P01  -> SchemaMissingError(table)
    ProgrammingError 42703  -> SchemaMissingError(table, column)
    OperationalError        -> StoreUnavailableError
    InterfaceError          -> StoreUnavailableError

Anything else propagates unchanged.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from billing_kernel.db.schema import schema_missing_error
from billing_kernel.logging_config import get_logger

logger = get_logger("db.errors")

UNDEFINED_TABLE = "42P01"
UNDEFINED_COLUMN = "42703"


def sqlstate_of(exc: DBAPIError) -> str | None:
    """SQLSTATE reported by the DBAPI driver, if any (psycopg 3 and 2)."""
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _diag(exc: DBAPIError, name: str) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, name, None) if diag is not None else None


@contextmanager
def translate_store_errors(
    operation: str,
    table: str | None = None,
    column: str | None = None,
) -> Generator[None, None, None]:
    """
    Re-raise store failures raised inside the block as kernel exceptions.

    Args:
        operation: Name of the operation, carried on StoreUnavailableError.
        table: Table the block works on, used when the driver does not
            name one.
        column: Column the block depends on, used for undefined-column
            errors the driver does not attribute.
    """
    from billing_kernel.exceptions import StoreUnavailableError

    try:
        yield
    except DBAPIError as exc:
        state = sqlstate_of(exc)
        if state == UNDEFINED_TABLE:
            name = _diag(exc, "table_name") or table or "unknown"
            logger.error(
                "store_schema_missing",
                extra={"operation": operation, "table": name, "sqlstate": state},
            )
            raise schema_missing_error(name) from exc
        if state == UNDEFINED_COLUMN:
            name = _diag(exc, "table_name") or table or "unknown"
            col = _diag(exc, "column_name") or column
            logger.error(
                "store_schema_missing",
                extra={
                    "operation": operation,
                    "table": name,
                    "column": col,
                    "sqlstate": state,
                },
            )
            raise schema_missing_error(name, col) from exc
        if isinstance(exc, (OperationalError, InterfaceError)):
            logger.error(
                "store_unavailable",
                extra={"operation": operation, "sqlstate": state},
            )
            raise StoreUnavailableError(operation, str(exc.orig)) from exc
        raise
