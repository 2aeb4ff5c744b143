"""
SnapshotCodec -- snapshot <-> versioned JSON payload, customers <-> CSV.

Pure functions, ZERO I/O (text in, text out).

JSON payload::

    {"version": 1, "type": "all" | "cable" | "internet",
     "timestamp": "<ISO 8601>",
     "customers": [...], "packages": [...], "bundles": [...]}

A key missing from the payload decodes to ``Absent``; a key holding a list
(even an empty one) decodes to ``Present``.  Rows use the store's column
names; camelCase keys written by older exports (``lastRecharge``,
``boxNumber``, ``macAddress``, ``excludeFromReset``, ``myProfit``) are
accepted on decode.

CSV has a fixed column order (see ``CSV_HEADER``); fields containing a
comma, quote or newline are double-quoted with embedded quotes doubled.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime
from typing import Any, Iterable
from uuid import uuid4

from billing_kernel.domain.dtos import (
    BundleRecord,
    CustomerRecord,
    PackageRecord,
    join_packages,
    split_packages,
)
from billing_kernel.domain.snapshot import (
    ABSENT,
    SNAPSHOT_VERSION,
    Collection,
    Present,
    Snapshot,
)
from billing_kernel.domain.values import PaymentStatus, ServiceType, SnapshotScope
from billing_kernel.exceptions import (
    InvalidCustomerFieldError,
    InvalidSnapshotError,
    MalformedCsvError,
)

CSV_HEADER = (
    "ID",
    "Name",
    "Type",
    "Package",
    "Status",
    "Address",
    "Mobile",
    "Last Recharge",
    "Box Number",
    "MAC Address",
)


# =============================================================================
# Snapshot construction
# =============================================================================


def _collection(rows: Iterable | None) -> Collection:
    if rows is None:
        return ABSENT
    return Present(tuple(rows))


def encode(
    customers: Iterable[CustomerRecord] | None,
    packages: Iterable[PackageRecord] | None,
    bundles: Iterable[BundleRecord] | None,
    scope: SnapshotScope,
    timestamp: datetime,
) -> Snapshot:
    """Build a snapshot.  Passing None for a collection leaves it Absent."""
    return Snapshot(
        scope=scope,
        timestamp=timestamp,
        customers=_collection(customers),
        packages=_collection(packages),
        bundles=_collection(bundles),
    )


# =============================================================================
# Row mapping
# =============================================================================


def _opt(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _parse_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _parse_enum(enum_cls, field: str, value: Any):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise InvalidCustomerFieldError(field, value) from None


def _first(row: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row:
            return row[key]
    return None


def customer_to_row(record: CustomerRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "package": record.package,
        "status": record.status.value,
        "type": record.service_type.value,
        "address": record.address,
        "mobile": record.mobile,
        "last_recharge": (
            record.last_payment_date.isoformat() if record.last_payment_date else None
        ),
        "box_number": record.box_number,
        "mac_address": record.mac_address,
        "exclude_from_reset": record.excluded_from_reset,
        "deleted": record.deleted,
    }


def customer_from_row(row: dict[str, Any]) -> CustomerRecord:
    """Map a payload row to a record.

    Raises:
        InvalidCustomerFieldError: On an unknown status or type.
        ValueError: On an unparseable last recharge date.
    """
    return CustomerRecord(
        id=str(row.get("id") or uuid4()),
        name=str(row.get("name") or ""),
        packages=split_packages(row.get("package")),
        status=_parse_enum(PaymentStatus, "status", row.get("status") or "unpaid"),
        service_type=_parse_enum(ServiceType, "type", row.get("type")),
        address=str(row.get("address") or ""),
        mobile=_opt(row.get("mobile")),
        last_payment_date=_parse_date(_first(row, "last_recharge", "lastRecharge")),
        box_number=_opt(_first(row, "box_number", "boxNumber")),
        mac_address=_opt(_first(row, "mac_address", "macAddress")),
        excluded_from_reset=_parse_bool(_first(row, "exclude_from_reset", "excludeFromReset")),
        deleted=_parse_bool(row.get("deleted")),
    )


def package_to_row(record: PackageRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "price": record.price,
        "type": record.service_type.value,
        "features": record.features,
        "active": record.active,
        "my_profit": record.my_profit,
    }


def package_from_row(row: dict[str, Any]) -> PackageRecord:
    return PackageRecord(
        id=str(row.get("id") or uuid4()),
        name=str(row.get("name") or ""),
        price=str(row.get("price") or ""),
        service_type=_parse_enum(ServiceType, "type", row.get("type")),
        features=str(row.get("features") or ""),
        active=_parse_bool(row.get("active"), default=True),
        my_profit=_opt(_first(row, "my_profit", "myProfit")),
    )


def bundle_to_row(record: BundleRecord) -> dict[str, Any]:
    return {"id": record.id, "name": record.name, "items": join_packages(record.items)}


def bundle_from_row(row: dict[str, Any]) -> BundleRecord:
    return BundleRecord(
        id=str(row.get("id") or uuid4()),
        name=str(row.get("name") or ""),
        items=split_packages(row.get("items")),
    )


# =============================================================================
# JSON payload
# =============================================================================


def to_payload(snapshot: Snapshot) -> dict[str, Any]:
    """Versioned dict form.  Absent collections are omitted."""
    payload: dict[str, Any] = {
        "version": snapshot.version,
        "type": snapshot.scope.value,
        "timestamp": snapshot.timestamp.isoformat(),
    }
    if snapshot.customers.is_present:
        payload["customers"] = [customer_to_row(c) for c in snapshot.customer_rows()]
    if snapshot.packages.is_present:
        payload["packages"] = [package_to_row(p) for p in snapshot.package_rows()]
    if snapshot.bundles.is_present:
        payload["bundles"] = [bundle_to_row(b) for b in snapshot.bundle_rows()]
    return payload


def to_json(snapshot: Snapshot) -> str:
    return json.dumps(to_payload(snapshot), ensure_ascii=False)


def _decode_rows(payload: dict[str, Any], key: str, mapper) -> Collection:
    if key not in payload or payload[key] is None:
        return ABSENT
    rows = payload[key]
    if not isinstance(rows, list):
        raise InvalidSnapshotError(f"'{key}' must be a list")
    decoded = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise InvalidSnapshotError(f"'{key}[{index}]' must be an object")
        try:
            decoded.append(mapper(row))
        except (InvalidCustomerFieldError, ValueError) as exc:
            raise InvalidSnapshotError(f"'{key}[{index}]': {exc}") from exc
    return Present(tuple(decoded))


def from_payload(payload: dict[str, Any], default_timestamp: datetime | None = None) -> Snapshot:
    """Decode a payload dict.

    Raises:
        InvalidSnapshotError: On an unsupported version, unknown scope or
            malformed rows.
    """
    if not isinstance(payload, dict):
        raise InvalidSnapshotError("payload must be a JSON object")

    version = payload.get("version", SNAPSHOT_VERSION)
    if version != SNAPSHOT_VERSION:
        raise InvalidSnapshotError(f"unsupported version {version!r}")

    try:
        scope = SnapshotScope(str(payload.get("type") or "all").lower())
    except ValueError:
        raise InvalidSnapshotError(f"unknown scope {payload.get('type')!r}") from None

    raw_ts = payload.get("timestamp")
    if raw_ts:
        try:
            timestamp = datetime.fromisoformat(str(raw_ts).replace("Z", "+00:00"))
        except ValueError:
            raise InvalidSnapshotError(f"bad timestamp {raw_ts!r}") from None
    elif default_timestamp is not None:
        timestamp = default_timestamp
    else:
        raise InvalidSnapshotError("timestamp is missing")

    return Snapshot(
        scope=scope,
        timestamp=timestamp,
        customers=_decode_rows(payload, "customers", customer_from_row),
        packages=_decode_rows(payload, "packages", package_from_row),
        bundles=_decode_rows(payload, "bundles", bundle_from_row),
        version=version,
    )


def from_json(text: str, default_timestamp: datetime | None = None) -> Snapshot:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidSnapshotError(f"not valid JSON ({exc.msg})") from exc
    return from_payload(payload, default_timestamp=default_timestamp)


# =============================================================================
# CSV
# =============================================================================


def encode_csv(customers: Iterable[CustomerRecord]) -> str:
    """One header line plus one line per customer, fixed column order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADER)
    for c in customers:
        writer.writerow(
            (
                c.id,
                c.name,
                c.service_type.value,
                c.package,
                c.status.value,
                c.address,
                c.mobile or "",
                c.last_payment_date.isoformat() if c.last_payment_date else "",
                c.box_number or "",
                c.mac_address or "",
            )
        )
    return buffer.getvalue()


def decode_csv(text: str) -> list[CustomerRecord]:
    """Parse CSV text positionally against ``CSV_HEADER``.

    The first line is a header and is skipped whatever it says.  Blank
    lines are ignored; short rows are padded with empty fields.

    Raises:
        MalformedCsvError: Fewer than 2 lines, or a row that cannot be mapped.
    """
    stripped = (text or "").strip()
    if len(stripped.splitlines()) < 2:
        raise MalformedCsvError("not enough lines")

    reader = csv.reader(io.StringIO(stripped))
    next(reader)

    customers: list[CustomerRecord] = []
    for cols in reader:
        if not any(col.strip() for col in cols):
            continue
        cols = (cols + [""] * len(CSV_HEADER))[: len(CSV_HEADER)]
        row = dict(
            id=cols[0],
            name=cols[1],
            type=cols[2],
            package=cols[3],
            status=cols[4],
            address=cols[5],
            mobile=cols[6],
            last_recharge=cols[7],
            box_number=cols[8],
            mac_address=cols[9],
        )
        try:
            customers.append(customer_from_row(row))
        except (InvalidCustomerFieldError, ValueError) as exc:
            raise MalformedCsvError(str(exc), line_number=reader.line_num) from exc
    return customers
