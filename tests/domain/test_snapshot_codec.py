"""
Tests for the snapshot codec: versioned JSON payloads and customer CSV.
"""

from datetime import date, datetime

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from billing_kernel.domain import snapshot_codec as codec
from billing_kernel.domain.dtos import BundleRecord, CustomerRecord, PackageRecord
from billing_kernel.domain.snapshot import ABSENT, Absent, Present
from billing_kernel.domain.values import PaymentStatus, ServiceType, SnapshotScope
from billing_kernel.exceptions import InvalidSnapshotError, MalformedCsvError

STAMP = datetime(2024, 3, 10, 12, 0)


def _customer(**overrides) -> CustomerRecord:
    fields = dict(
        id="cust-001",
        name="Asha",
        service_type=ServiceType.CABLE,
        packages=("Basic Cable",),
        status=PaymentStatus.PAID,
        address="12 Main Road",
        mobile="9800000000",
        last_payment_date=date(2024, 3, 1),
    )
    fields.update(overrides)
    return CustomerRecord(**fields)


class TestJsonPayload:

    def test_absent_collections_are_omitted(self):
        snapshot = codec.encode([_customer()], None, None, SnapshotScope.CABLE, STAMP)
        payload = codec.to_payload(snapshot)

        assert payload["version"] == 1
        assert payload["type"] == "cable"
        assert "customers" in payload
        assert "packages" not in payload
        assert "bundles" not in payload

    def test_empty_list_decodes_as_present(self):
        snapshot = codec.from_payload(
            {"version": 1, "type": "all", "timestamp": STAMP.isoformat(), "packages": []}
        )

        assert isinstance(snapshot.packages, Present)
        assert len(snapshot.packages) == 0
        assert snapshot.customers is ABSENT
        assert isinstance(snapshot.bundles, Absent)
        assert snapshot.is_restorable

    def test_round_trip_keeps_rows(self):
        snapshot = codec.encode(
            [_customer(excluded_from_reset=True)],
            [PackageRecord(id="pkg-1", name="Fast", service_type=ServiceType.INTERNET, price="500")],
            [BundleRecord(id="b-1", name="Combo", items=("Basic Cable", "Fast"))],
            SnapshotScope.ALL,
            STAMP,
        )

        decoded = codec.from_json(codec.to_json(snapshot))

        assert decoded == snapshot

    def test_camel_case_keys_accepted(self):
        payload = {
            "version": 1,
            "type": "internet",
            "timestamp": "2024-03-10T12:00:00Z",
            "customers": [
                {
                    "id": "c1",
                    "name": "Ravi",
                    "type": "internet",
                    "status": "unpaid",
                    "lastRecharge": "2024-02-01",
                    "macAddress": "AA:BB",
                    "excludeFromReset": True,
                }
            ],
        }

        customer = codec.from_payload(payload).customer_rows()[0]

        assert customer.last_payment_date == date(2024, 2, 1)
        assert customer.mac_address == "AA:BB"
        assert customer.excluded_from_reset is True

    def test_missing_timestamp_uses_default(self):
        snapshot = codec.from_payload({"customers": []}, default_timestamp=STAMP)
        assert snapshot.timestamp == STAMP
        assert snapshot.scope is SnapshotScope.ALL

    def test_missing_timestamp_without_default(self):
        with pytest.raises(InvalidSnapshotError):
            codec.from_payload({"customers": []})

    @pytest.mark.parametrize(
        "payload",
        [
            {"version": 2, "timestamp": "2024-03-10", "customers": []},
            {"type": "satellite", "timestamp": "2024-03-10", "customers": []},
            {"timestamp": "2024-03-10", "customers": {"id": "x"}},
            {"timestamp": "2024-03-10", "customers": [{"id": "x", "type": "radio"}]},
            [],
        ],
    )
    def test_malformed_payload_rejected(self, payload):
        with pytest.raises(InvalidSnapshotError):
            codec.from_payload(payload)

    def test_not_json(self):
        with pytest.raises(InvalidSnapshotError):
            codec.from_json("{not json")


class TestCsv:

    def test_header_and_quoting(self):
        text = codec.encode_csv([_customer(address='Flat 2, "Rose" Villa')])
        header, line = text.strip().splitlines()

        assert header == ",".join(codec.CSV_HEADER)
        assert '"Flat 2, ""Rose"" Villa"' in line

    def test_round_trip_with_comma_in_address(self):
        original = [
            _customer(address="House 4, Lane 2"),
            _customer(id="cust-002", name="Binu", service_type=ServiceType.INTERNET,
                      packages=("Fast",), status=PaymentStatus.UNPAID, mobile=None,
                      last_payment_date=None, mac_address="AA:BB"),
        ]

        decoded = codec.decode_csv(codec.encode_csv(original))

        assert decoded == original

    def test_short_rows_are_padded(self):
        decoded = codec.decode_csv("ID,Name,Type\nc1,Asha,cable\n")
        assert decoded[0].name == "Asha"
        assert decoded[0].status is PaymentStatus.UNPAID
        assert decoded[0].mobile is None

    @pytest.mark.parametrize("text", ["", "ID,Name", "\n\nID,Name\n"])
    def test_fewer_than_two_lines(self, text):
        with pytest.raises(MalformedCsvError):
            codec.decode_csv(text)

    def test_bad_type_reports_line(self):
        with pytest.raises(MalformedCsvError) as exc_info:
            codec.decode_csv("ID,Name,Type\nc1,Asha,cable\nc2,Binu,radio\n")
        assert exc_info.value.line_number == 3


_field = st.text(
    alphabet=st.characters(categories=("Lu", "Ll", "Nd"), include_characters=' ,"-'),
    min_size=1,
    max_size=20,
).map(str.strip).filter(bool)


@settings(max_examples=50)
@given(name=_field, address=_field, mobile=st.none() | _field)
def test_csv_preserves_free_text_fields(name, address, mobile):
    record = _customer(name=name, address=address, mobile=mobile, packages=())
    assert codec.decode_csv(codec.encode_csv([record])) == [record]
