"""
Snapshot -- a point-in-time, optionally scoped bundle of customers,
packages and bundles.

ZERO I/O.  Each collection is a tagged variant:

    Absent            the snapshot says nothing about this collection;
                      a restore leaves it untouched.
    Present(rows)     the snapshot carries this collection; a restore
                      replaces the scoped rows with ``rows``.  An empty
                      ``rows`` clears the scoped rows.

The distinction is explicit so that "missing" and "empty" can never be
confused through a None/[] convention.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar, Union

from billing_kernel.domain.dtos import BundleRecord, CustomerRecord, PackageRecord
from billing_kernel.domain.values import SnapshotScope

SNAPSHOT_VERSION = 1

RowT = TypeVar("RowT")


@dataclass(frozen=True)
class Absent:
    """Collection not carried by the snapshot."""

    @property
    def is_present(self) -> bool:
        return False

    def __len__(self) -> int:
        return 0


ABSENT = Absent()


@dataclass(frozen=True)
class Present(Generic[RowT]):
    """Collection carried by the snapshot (possibly empty)."""

    rows: tuple[RowT, ...] = ()

    @property
    def is_present(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self.rows)


Collection = Union[Absent, Present]


@dataclass(frozen=True)
class Snapshot:
    """Immutable snapshot.  Each restore consumes exactly one."""

    scope: SnapshotScope
    timestamp: datetime
    customers: Collection = ABSENT
    packages: Collection = ABSENT
    bundles: Collection = ABSENT
    version: int = SNAPSHOT_VERSION

    @property
    def is_restorable(self) -> bool:
        """A restore needs customers or packages to be present."""
        return self.customers.is_present or self.packages.is_present

    def customer_rows(self) -> tuple[CustomerRecord, ...]:
        return self.customers.rows if isinstance(self.customers, Present) else ()

    def package_rows(self) -> tuple[PackageRecord, ...]:
        return self.packages.rows if isinstance(self.packages, Present) else ()

    def bundle_rows(self) -> tuple[BundleRecord, ...]:
        return self.bundles.rows if isinstance(self.bundles, Present) else ()
