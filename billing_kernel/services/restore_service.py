"""
RestoreService -- reconcile live records against a snapshot.

Responsibility:
    Replace the scoped rows of each collection the snapshot carries with the
    snapshot's rows.

Per collection (customers, packages, bundles):
    Absent                      -> SKIPPED, live rows untouched
    Present, scope ALL          -> delete every row, then upsert the rows
    Present, scope cable/internet
                                -> delete rows of that type, then upsert
    bundles, scope not ALL      -> SKIPPED (bundles carry no type)
    Present but empty           -> the scoped rows are cleared

Each collection runs in its own SAVEPOINT: a failing collection is rolled
back to its savepoint and reported FAILED while the others still apply.
There is no cross-collection atomicity; callers inspect ``RestoreResult``
(or call ``raise_for_failures()``).

Failure modes:
    - InvalidSnapshotError: neither customers nor packages present, empty
      text, or undecodable JSON.  Raised before any mutation.
    - MalformedCsvError: CSV text with fewer than 2 lines or a bad row.
"""

from __future__ import annotations

from typing import Callable, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_kernel.db.base import RecordBase
from billing_kernel.db.errors import translate_store_errors
from billing_kernel.domain import snapshot_codec
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import CollectionOutcome, CollectionStatus, RestoreResult
from billing_kernel.domain.snapshot import Collection, Snapshot
from billing_kernel.domain.values import SnapshotScope
from billing_kernel.exceptions import BillingKernelError, InvalidSnapshotError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.catalog import Bundle, Package
from billing_kernel.models.customer import Customer
from billing_kernel.services.base import BaseService

logger = get_logger("services.restore")


class RestoreService(BaseService[Customer]):
    """Flush-only: the caller commits whatever collections were applied."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def apply(self, snapshot: Snapshot) -> RestoreResult:
        """
        Restore every present collection of ``snapshot``.

        Raises:
            InvalidSnapshotError: Nothing restorable; no mutation happened.
        """
        if not snapshot.is_restorable:
            raise InvalidSnapshotError("no customers or packages to restore")

        scope = snapshot.scope
        logger.info(
            "restore_started",
            extra={
                "scope": scope.value,
                "customers": len(snapshot.customers),
                "packages": len(snapshot.packages),
                "bundles": len(snapshot.bundles),
            },
        )

        outcomes = (
            self._restore_collection(
                "customers", snapshot.customers, Customer, scope, scoped_by_type=True,
            ),
            self._restore_collection(
                "packages", snapshot.packages, Package, scope, scoped_by_type=True,
            ),
            self._restore_collection(
                "bundles", snapshot.bundles, Bundle, scope, scoped_by_type=False,
            ),
        )
        result = RestoreResult(scope=scope.value, outcomes=outcomes)

        logger.info(
            "restore_completed",
            extra={
                "scope": scope.value,
                "restored": [o.collection for o in result.restored],
                "failed": [o.collection for o in result.failed],
            },
        )
        return result

    def apply_text(self, text: str) -> RestoreResult:
        """
        Restore from pasted or uploaded text.

        Text starting with ``{`` is a snapshot JSON payload; anything else is
        customer CSV, restored with scope ALL (every customer row is replaced).

        Raises:
            InvalidSnapshotError: Empty text or invalid JSON payload.
            MalformedCsvError: Unparseable CSV.
        """
        data = (text or "").strip()
        if not data:
            raise InvalidSnapshotError("no backup data supplied")

        if data.startswith("{"):
            snapshot = snapshot_codec.from_json(data, default_timestamp=self._clock.now())
        else:
            customers = snapshot_codec.decode_csv(data)
            snapshot = snapshot_codec.encode(
                customers, None, None, SnapshotScope.ALL, self._clock.now(),
            )
        return self.apply(snapshot)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _restore_collection(
        self,
        name: str,
        collection: Collection,
        model: type[RecordBase],
        scope: SnapshotScope,
        scoped_by_type: bool,
    ) -> CollectionOutcome:
        if not collection.is_present:
            return CollectionOutcome(name, CollectionStatus.SKIPPED)
        if not scoped_by_type and scope is not SnapshotScope.ALL:
            logger.info(
                "restore_collection_skipped",
                extra={"collection": name, "scope": scope.value},
            )
            return CollectionOutcome(name, CollectionStatus.SKIPPED)

        rows: Sequence = collection.rows
        try:
            with self.session.begin_nested():
                with translate_store_errors(f"restore_{name}", table=model.__tablename__):
                    deleted = self._delete_scoped(model, scope)
                    self._upsert(rows, model.from_dto)
                    self.session.flush()
        except (SQLAlchemyError, BillingKernelError) as exc:
            logger.error(
                "restore_collection_failed",
                extra={"collection": name, "scope": scope.value, "reason": str(exc)},
            )
            return CollectionOutcome(name, CollectionStatus.FAILED, error=str(exc))

        logger.info(
            "restore_collection_applied",
            extra={"collection": name, "deleted": deleted, "inserted": len(rows)},
        )
        return CollectionOutcome(
            name, CollectionStatus.RESTORED, deleted=deleted, inserted=len(rows),
        )

    def _delete_scoped(self, model: type[RecordBase], scope: SnapshotScope) -> int:
        stmt = delete(model)
        service_type = scope.service_type
        if service_type is not None:
            stmt = stmt.where(model.service_type == service_type.value)
        result = self.session.execute(
            stmt, execution_options={"synchronize_session": "fetch"},
        )
        return result.rowcount or 0

    def _upsert(self, rows: Sequence, to_model: Callable) -> None:
        for row in rows:
            self.session.merge(to_model(row))
