"""
Value objects for the billing domain.

ZERO I/O.  Enums mirror the exact strings stored in the record store and in
snapshot payloads, so ``Enum(value)`` is the parse step everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class PaymentStatus(str, Enum):
    """Customer payment status.  Unpaid is the initial state."""

    PAID = "paid"
    UNPAID = "unpaid"


class ServiceType(str, Enum):
    """Service line a customer or package belongs to."""

    CABLE = "cable"
    INTERNET = "internet"


class SnapshotScope(str, Enum):
    """Which records a snapshot (or restore) covers."""

    ALL = "all"
    CABLE = "cable"
    INTERNET = "internet"

    @property
    def service_type(self) -> ServiceType | None:
        """The service type this scope filters on, or None for ALL."""
        if self is SnapshotScope.ALL:
            return None
        return ServiceType(self.value)


class AuditAction(str, Enum):
    """Customer lifecycle events recorded in the history."""

    CREATED = "Created"
    UPDATED = "Updated"
    DELETED = "Deleted"
    RESTORED = "Restored"
    MONTHLY_RESET = "MonthlyReset"
    AUTO_EXPIRE = "AutoExpire"
    INVOICE_GENERATED = "InvoiceGenerated"

    @classmethod
    def _missing_(cls, value):
        # Older history rows were written with spaced tags ("Monthly Reset").
        if isinstance(value, str):
            compact = value.replace(" ", "")
            for member in cls:
                if member.value == compact:
                    return member
        return None

    @classmethod
    def parse(cls, tag: str) -> AuditAction | str:
        """Known tags become members; any other tag is kept as written.

        The history table is shared with the customer CRUD layer, which may
        record tags this engine does not know about.
        """
        try:
            return cls(tag)
        except ValueError:
            return tag

    @staticmethod
    def tag_of(action: AuditAction | str) -> str:
        return action.value if isinstance(action, AuditAction) else str(action)


@dataclass(frozen=True, order=True)
class MonthKey:
    """A billing cycle identifier: calendar year and month.

    Serialized in the settings store as an ISO date on the first of the
    month.  Parsing accepts any ISO date (older markers stored the exact
    reset day) and ``YYYY-MM``.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month out of range: {self.month}")

    @classmethod
    def of(cls, day: date | datetime) -> MonthKey:
        return cls(day.year, day.month)

    @classmethod
    def parse(cls, value: str | None) -> MonthKey | None:
        """Parse a stored marker.  Empty means "never reset".

        Raises:
            ValueError: If the value is not an ISO date or ``YYYY-MM``.
        """
        if value is None or not value.strip():
            return None
        text = value.strip()
        if len(text) == 7:
            year, month = text.split("-")
            return cls(int(year), int(month))
        return cls.of(date.fromisoformat(text[:10]))

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def to_iso(self) -> str:
        return self.first_day().isoformat()

    def previous(self) -> MonthKey:
        if self.month == 1:
            return MonthKey(self.year - 1, 12)
        return MonthKey(self.year, self.month - 1)

    def next(self) -> MonthKey:
        if self.month == 12:
            return MonthKey(self.year + 1, 1)
        return MonthKey(self.year, self.month + 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
