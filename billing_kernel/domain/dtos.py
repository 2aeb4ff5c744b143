"""
Frozen data transfer objects for the billing kernel.

ZERO I/O.  Services and selectors return these, never ORM instances, so
callers cannot mutate store rows behind a service's back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from billing_kernel.domain.values import (
    AuditAction,
    MonthKey,
    PaymentStatus,
    ServiceType,
)

MIN_DUE_DAY = 1
MAX_DUE_DAY = 28


def split_packages(value: str | None) -> tuple[str, ...]:
    """Split a stored comma-joined package list, keeping order and duplicates."""
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def join_packages(names: tuple[str, ...] | list[str]) -> str:
    return ", ".join(names)


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class CustomerRecord:
    """Immutable view of one customer row."""

    id: str
    name: str
    service_type: ServiceType
    packages: tuple[str, ...] = ()
    status: PaymentStatus = PaymentStatus.UNPAID
    address: str = ""
    mobile: str | None = None
    last_payment_date: date | None = None
    box_number: str | None = None
    mac_address: str | None = None
    excluded_from_reset: bool = False
    deleted: bool = False

    @property
    def package(self) -> str:
        """Packages in their stored, comma-joined form."""
        return join_packages(self.packages)


@dataclass(frozen=True)
class PackageRecord:
    id: str
    name: str
    service_type: ServiceType
    price: str = ""
    features: str = ""
    active: bool = True
    my_profit: str | None = None


@dataclass(frozen=True)
class BundleRecord:
    id: str
    name: str
    items: tuple[str, ...] = ()


@dataclass(frozen=True)
class AuditEntryInfo:
    """One history entry.  ``customer_name`` is filled by the reset log view.

    ``action`` is an ``AuditAction`` for tags this engine writes and the raw
    tag string for anything else found in the store.
    """

    id: str
    customer_id: str
    action: AuditAction | str
    details: str
    timestamp: datetime
    customer_name: str | None = None

    @property
    def tag(self) -> str:
        return AuditAction.tag_of(self.action)


@dataclass(frozen=True)
class SavedSnapshotInfo:
    """A named snapshot kept in the database (payload not included)."""

    id: str
    name: str
    created_at: datetime


# =============================================================================
# Cycle configuration
# =============================================================================


@dataclass(frozen=True)
class CycleConfig:
    """Process-wide billing cycle settings.

    ``last_reset_raw`` keeps the marker exactly as stored so the reset can
    compare-and-swap against it.
    """

    due_day: int = MIN_DUE_DAY
    last_reset: MonthKey | None = None
    auto_reset_enabled: bool = False
    last_reset_raw: str | None = None

    def __post_init__(self) -> None:
        if not MIN_DUE_DAY <= self.due_day <= MAX_DUE_DAY:
            from billing_kernel.exceptions import InvalidDueDayError

            raise InvalidDueDayError(self.due_day)


# =============================================================================
# Engine results
# =============================================================================


@dataclass(frozen=True)
class ResetResult:
    """Outcome of one monthly reset run.

    ``already_reset`` is True when the run found the month key already
    advanced and transitioned nobody.
    """

    count: int
    month_key: MonthKey
    customer_ids: tuple[str, ...] = ()
    already_reset: bool = False
    audit_failures: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ExpireResult:
    count: int
    customer_ids: tuple[str, ...] = ()
    audit_failures: int = 0


class CollectionStatus(str, Enum):
    """Per-collection restore outcome."""

    RESTORED = "restored"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class CollectionOutcome:
    collection: str
    status: CollectionStatus
    deleted: int = 0
    inserted: int = 0
    error: str | None = None


@dataclass(frozen=True)
class RestoreResult:
    """Per-collection outcomes of one restore."""

    scope: str
    outcomes: tuple[CollectionOutcome, ...] = field(default_factory=tuple)

    def outcome(self, collection: str) -> CollectionOutcome:
        for outcome in self.outcomes:
            if outcome.collection == collection:
                return outcome
        raise KeyError(collection)

    @property
    def failed(self) -> tuple[CollectionOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status is CollectionStatus.FAILED)

    @property
    def restored(self) -> tuple[CollectionOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status is CollectionStatus.RESTORED)

    @property
    def succeeded(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        """Raise PartialRestoreError when any collection failed."""
        if self.failed:
            from billing_kernel.exceptions import PartialRestoreError

            raise PartialRestoreError(
                failed={o.collection: o.error or "" for o in self.failed},
                applied=tuple(o.collection for o in self.restored),
            )
