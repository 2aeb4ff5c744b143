"""
SnapshotArchiveService -- named snapshots kept in the ``backups`` table.

``save`` captures the live rows (customers and packages filtered by the
scope's service type, bundles always) and stores the versioned JSON
payload.  Saved snapshots are restored through RestoreService, exported as
customer CSV, or deleted.  Soft-deleted customers are captured too, so a
restore brings the recycle bin back with everything else.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.db.schema import SchemaProbe
from billing_kernel.domain import snapshot_codec
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import RestoreResult, SavedSnapshotInfo
from billing_kernel.domain.snapshot import Snapshot
from billing_kernel.domain.values import SnapshotScope
from billing_kernel.exceptions import InvalidSnapshotError, SnapshotNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.catalog import Bundle, Package
from billing_kernel.models.customer import Customer
from billing_kernel.models.saved_snapshot import SavedSnapshot
from billing_kernel.services.base import BaseService
from billing_kernel.services.restore_service import RestoreService

logger = get_logger("services.snapshot_archive")

BACKUP_TABLE = "backups"


class SnapshotArchiveService(BaseService[SavedSnapshot]):
    """Flush-only: the caller commits."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        restore_service: RestoreService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._restore = restore_service or RestoreService(session, self._clock)
        self._probe = SchemaProbe(session)

    # -------------------------------------------------------------------------
    # Capture
    # -------------------------------------------------------------------------

    def capture(self, scope: SnapshotScope = SnapshotScope.ALL) -> Snapshot:
        """Snapshot of the live store for ``scope``."""
        customers = select(Customer).order_by(Customer.id)
        packages = select(Package).order_by(Package.id)
        service_type = scope.service_type
        if service_type is not None:
            customers = customers.where(Customer.service_type == service_type.value)
            packages = packages.where(Package.service_type == service_type.value)

        with translate_store_errors("snapshot_capture"):
            customer_rows = [c.to_dto() for c in self.session.execute(customers).scalars()]
            package_rows = [p.to_dto() for p in self.session.execute(packages).scalars()]
            bundle_rows = [
                b.to_dto()
                for b in self.session.execute(select(Bundle).order_by(Bundle.id)).scalars()
            ]

        return snapshot_codec.encode(
            customer_rows, package_rows, bundle_rows, scope, self._clock.now(),
        )

    # -------------------------------------------------------------------------
    # Archive
    # -------------------------------------------------------------------------

    def save(self, name: str, scope: SnapshotScope = SnapshotScope.ALL) -> SavedSnapshotInfo:
        """
        Capture and store a named snapshot.

        Raises:
            InvalidSnapshotError: Blank name.
            SchemaMissingError: ``backups`` is not provisioned.
        """
        name = (name or "").strip()
        if not name:
            raise InvalidSnapshotError("a backup name is required")

        self._probe.require(BACKUP_TABLE)
        snapshot = self.capture(scope)
        row = SavedSnapshot(
            name=name,
            data=snapshot_codec.to_json(snapshot),
            created_at=self._clock.now(),
        )
        with translate_store_errors("snapshot_save", table=BACKUP_TABLE):
            self.session.add(row)
            self.session.flush()

        logger.info(
            "snapshot_saved",
            extra={
                "snapshot_id": row.id,
                "scope": scope.value,
                "customers": len(snapshot.customers),
                "packages": len(snapshot.packages),
            },
        )
        return row.to_dto()

    def list(self, search: str | None = None) -> list[SavedSnapshotInfo]:
        """Saved snapshots, newest first, optionally filtered by name."""
        self._probe.require(BACKUP_TABLE)
        stmt = select(SavedSnapshot).order_by(SavedSnapshot.created_at.desc())
        if search and search.strip():
            stmt = stmt.where(SavedSnapshot.name.ilike(f"%{search.strip()}%"))
        with translate_store_errors("snapshot_list", table=BACKUP_TABLE):
            rows = self.session.execute(stmt).scalars().all()
        return [row.to_dto() for row in rows]

    def _get(self, snapshot_id: str) -> SavedSnapshot:
        self._probe.require(BACKUP_TABLE)
        with translate_store_errors("snapshot_get", table=BACKUP_TABLE):
            row = self.session.get(SavedSnapshot, snapshot_id)
        if row is None:
            raise SnapshotNotFoundError(snapshot_id)
        return row

    def load(self, snapshot_id: str) -> Snapshot:
        """
        Decode a saved snapshot.

        Raises:
            SnapshotNotFoundError: No such saved snapshot.
            InvalidSnapshotError: Stored payload cannot be decoded.
        """
        row = self._get(snapshot_id)
        return snapshot_codec.from_json(row.data, default_timestamp=row.created_at)

    def delete(self, snapshot_id: str) -> None:
        row = self._get(snapshot_id)
        with translate_store_errors("snapshot_delete", table=BACKUP_TABLE):
            self.session.delete(row)
            self.session.flush()
        logger.info("snapshot_deleted", extra={"snapshot_id": snapshot_id})

    def export_csv(self, snapshot_id: str) -> str:
        """Customers of a saved snapshot as CSV (header only when it has none)."""
        return snapshot_codec.encode_csv(self.load(snapshot_id).customer_rows())

    def restore(self, snapshot_id: str) -> RestoreResult:
        snapshot = self.load(snapshot_id)
        logger.info(
            "snapshot_restore_requested",
            extra={"snapshot_id": snapshot_id, "scope": snapshot.scope.value},
        )
        return self._restore.apply(snapshot)
