"""Tests for schema probing and store error translation."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from billing_kernel.db.errors import sqlstate_of, translate_store_errors
from billing_kernel.db.schema import SchemaProbe
from billing_kernel.exceptions import (
    AuditSchemaMissingError,
    SchemaMissingError,
    StoreUnavailableError,
)


class _Diag:
    def __init__(self, table_name=None, column_name=None):
        self.table_name = table_name
        self.column_name = column_name


class _DriverError(Exception):
    """Stands in for a psycopg error: carries sqlstate and diag."""

    def __init__(self, message, sqlstate=None, diag=None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.diag = diag or _Diag()


def _wrap(cls, orig):
    return cls("SELECT 1", {}, orig)


class TestTranslateStoreErrors:

    def test_undefined_table(self):
        orig = _DriverError("relation does not exist", "42P01", _Diag(table_name="customers"))
        with pytest.raises(SchemaMissingError) as exc_info:
            with translate_store_errors("select", table="fallback"):
                raise _wrap(ProgrammingError, orig)
        assert exc_info.value.table == "customers"
        assert exc_info.value.column is None

    def test_undefined_column_uses_hint_when_driver_is_silent(self):
        orig = _DriverError("column does not exist", "42703")
        with pytest.raises(SchemaMissingError) as exc_info:
            with translate_store_errors("select", table="customers", column="exclude_from_reset"):
                raise _wrap(ProgrammingError, orig)
        assert exc_info.value.table == "customers"
        assert exc_info.value.column == "exclude_from_reset"

    def test_undefined_history_table(self):
        orig = _DriverError("relation does not exist", "42P01")
        with pytest.raises(AuditSchemaMissingError):
            with translate_store_errors("audit", table="customer_history"):
                raise _wrap(ProgrammingError, orig)

    def test_connection_failure(self):
        with pytest.raises(StoreUnavailableError) as exc_info:
            with translate_store_errors("monthly_reset_update"):
                raise _wrap(OperationalError, _DriverError("server closed the connection"))
        assert exc_info.value.operation == "monthly_reset_update"
        assert exc_info.value.code == "STORE_UNAVAILABLE"

    def test_other_errors_propagate(self):
        with pytest.raises(IntegrityError):
            with translate_store_errors("insert"):
                raise _wrap(IntegrityError, _DriverError("duplicate key", "23505"))

    def test_sqlstate_from_psycopg2_pgcode(self):
        orig = Exception("x")
        orig.pgcode = "42703"
        assert sqlstate_of(_wrap(ProgrammingError, orig)) == "42703"


class TestSchemaProbe:

    def test_provisioned_store(self, session):
        probe = SchemaProbe(session)
        assert probe.has_table("customers")
        assert probe.has_column("customers", "exclude_from_reset")
        probe.require("customers", ("id", "status", "deleted"))

    def test_missing_table(self, session):
        session.execute(text("DROP TABLE backups"))
        probe = SchemaProbe(session)

        assert not probe.has_table("backups")
        with pytest.raises(SchemaMissingError) as exc_info:
            probe.require("backups")
        assert exc_info.value.operator_hint == "Create table 'backups'."

    def test_missing_column(self, session):
        with pytest.raises(SchemaMissingError) as exc_info:
            SchemaProbe(session).require("customers", ("id", "loyalty_points"))
        assert exc_info.value.column == "loyalty_points"
