"""
Tests for RestoreService.

Each collection is reconciled independently:
- Absent collections are left alone
- Present collections replace the scoped rows (empty clears them)
- bundles only restore with scope ALL
- a failing collection is reported while the others still apply
"""

from datetime import datetime

import pytest
from sqlalchemy import select, text

from billing_kernel.domain import snapshot_codec
from billing_kernel.domain.dtos import (
    BundleRecord,
    CollectionStatus,
    CustomerRecord,
    PackageRecord,
)
from billing_kernel.domain.values import PaymentStatus, ServiceType, SnapshotScope
from billing_kernel.exceptions import (
    InvalidSnapshotError,
    MalformedCsvError,
    PartialRestoreError,
)
from billing_kernel.models import Bundle, Customer, Package
from billing_kernel.services.restore_service import RestoreService

STAMP = datetime(2024, 3, 1, 9, 0)


@pytest.fixture
def restore_service(session, clock):
    return RestoreService(session, clock)


@pytest.fixture
def live_rows(make_customer, make_package, make_bundle):
    make_customer("Live cable", customer_id="cable-live")
    make_customer("Live internet", service_type="internet", customer_id="net-live")
    make_package("Basic Cable", "₹300")
    make_package("Fast", "₹500", service_type="internet")
    make_bundle("Combo", "Basic Cable, Fast")


def _ids(session, model):
    return set(session.execute(select(model.id)).scalars())


class TestScopedRestore:

    def test_cable_scope_replaces_cable_customers_only(
        self, session, live_rows, restore_service,
    ):
        snapshot = snapshot_codec.encode(
            [CustomerRecord(id="cable-new", name="Restored", service_type=ServiceType.CABLE)],
            None,
            None,
            SnapshotScope.CABLE,
            STAMP,
        )

        result = restore_service.apply(snapshot)

        assert result.outcome("customers").status is CollectionStatus.RESTORED
        assert result.outcome("customers").deleted == 1
        assert result.outcome("customers").inserted == 1
        assert result.outcome("packages").status is CollectionStatus.SKIPPED
        assert result.outcome("bundles").status is CollectionStatus.SKIPPED
        assert _ids(session, Customer) == {"cable-new", "net-live"}
        assert _ids(session, Package) == {"pkg-basic-cable", "pkg-fast"}

    def test_empty_present_collection_clears_scope(self, session, live_rows, restore_service):
        snapshot = snapshot_codec.encode([], [], None, SnapshotScope.INTERNET, STAMP)

        result = restore_service.apply(snapshot)

        assert result.succeeded
        assert _ids(session, Customer) == {"cable-live"}
        assert _ids(session, Package) == {"pkg-basic-cable"}

    def test_bundles_skipped_for_typed_scope(self, session, live_rows, restore_service):
        snapshot = snapshot_codec.encode(
            [], None, [BundleRecord(id="b2", name="Other")], SnapshotScope.CABLE, STAMP,
        )

        result = restore_service.apply(snapshot)

        assert result.outcome("bundles").status is CollectionStatus.SKIPPED
        assert session.execute(select(Bundle.name)).scalar_one() == "Combo"

    def test_scope_all_replaces_everything(self, session, live_rows, restore_service):
        snapshot = snapshot_codec.encode(
            [CustomerRecord(id="c1", name="Only", service_type=ServiceType.INTERNET,
                            status=PaymentStatus.PAID, deleted=True)],
            [PackageRecord(id="p1", name="Gold", service_type=ServiceType.CABLE, price="₹450")],
            [BundleRecord(id="b1", name="Family", items=("Gold",))],
            SnapshotScope.ALL,
            STAMP,
        )

        result = restore_service.apply(snapshot)

        assert [o.status for o in result.outcomes] == [CollectionStatus.RESTORED] * 3
        assert _ids(session, Customer) == {"c1"}
        assert session.get(Customer, "c1").deleted is True
        assert _ids(session, Package) == {"p1"}
        assert session.get(Bundle, "b1").items == "Gold"

    def test_restoring_an_existing_id_overwrites_it(self, session, live_rows, restore_service):
        snapshot = snapshot_codec.encode(
            [CustomerRecord(id="cable-live", name="Renamed", service_type=ServiceType.CABLE)],
            None, None, SnapshotScope.CABLE, STAMP,
        )

        restore_service.apply(snapshot)

        assert session.get(Customer, "cable-live").name == "Renamed"


class TestRestoreFailures:

    def test_nothing_restorable_is_rejected(self, session, live_rows, restore_service):
        snapshot = snapshot_codec.encode(None, None, [], SnapshotScope.ALL, STAMP)

        with pytest.raises(InvalidSnapshotError):
            restore_service.apply(snapshot)

        assert _ids(session, Customer) == {"cable-live", "net-live"}

    def test_failed_collection_does_not_block_others(self, session, live_rows, restore_service):
        session.execute(text("DROP TABLE packages"))
        snapshot = snapshot_codec.encode(
            [CustomerRecord(id="c1", name="New", service_type=ServiceType.CABLE)],
            [PackageRecord(id="p1", name="Gold", service_type=ServiceType.CABLE)],
            None,
            SnapshotScope.ALL,
            STAMP,
        )

        result = restore_service.apply(snapshot)

        assert result.outcome("customers").status is CollectionStatus.RESTORED
        assert result.outcome("packages").status is CollectionStatus.FAILED
        assert result.outcome("packages").error
        assert _ids(session, Customer) == {"c1"}
        with pytest.raises(PartialRestoreError) as exc_info:
            result.raise_for_failures()
        assert exc_info.value.applied == ("customers",)
        assert exc_info.value.partial_effect


class TestApplyText:

    def test_csv_restores_with_scope_all(self, session, live_rows, restore_service):
        csv_text = "ID,Name,Type,Package,Status\nc9,From CSV,cable,Basic Cable,paid\n"

        result = restore_service.apply_text(csv_text)

        assert result.scope == "all"
        assert result.outcome("packages").status is CollectionStatus.SKIPPED
        assert _ids(session, Customer) == {"c9"}
        assert _ids(session, Package) == {"pkg-basic-cable", "pkg-fast"}

    def test_json_payload(self, session, live_rows, restore_service):
        payload = (
            '{"version": 1, "type": "internet", "packages": '
            '[{"id": "p2", "name": "Fiber", "type": "internet", "price": "₹900"}]}'
        )

        result = restore_service.apply_text(payload)

        assert result.outcome("customers").status is CollectionStatus.SKIPPED
        assert _ids(session, Package) == {"pkg-basic-cable", "p2"}

    @pytest.mark.parametrize("blank", ["", "   \n"])
    def test_empty_text(self, restore_service, blank):
        with pytest.raises(InvalidSnapshotError):
            restore_service.apply_text(blank)

    def test_single_line_csv(self, restore_service):
        with pytest.raises(MalformedCsvError):
            restore_service.apply_text("ID,Name,Type")
