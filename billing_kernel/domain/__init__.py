"""
billing_kernel.domain -- pure types and rules for the billing cycle.

ZERO I/O.  Time always comes from an injected Clock.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.cycle_gate import CycleDecision, evaluate_cycle, is_cycle_due
from billing_kernel.domain.dtos import (
    AuditEntryInfo,
    BundleRecord,
    CollectionOutcome,
    CollectionStatus,
    CustomerRecord,
    CycleConfig,
    ExpireResult,
    PackageRecord,
    ResetResult,
    RestoreResult,
    SavedSnapshotInfo,
)
from billing_kernel.domain.expiry import ExpiryState, days_remaining, expiry_state
from billing_kernel.domain.snapshot import ABSENT, Absent, Present, Snapshot
from billing_kernel.domain.values import (
    AuditAction,
    MonthKey,
    PaymentStatus,
    ServiceType,
    SnapshotScope,
)

__all__ = [
    "ABSENT",
    "Absent",
    "AuditAction",
    "AuditEntryInfo",
    "BundleRecord",
    "Clock",
    "CollectionOutcome",
    "CollectionStatus",
    "CustomerRecord",
    "CycleConfig",
    "CycleDecision",
    "DeterministicClock",
    "ExpireResult",
    "ExpiryState",
    "MonthKey",
    "PackageRecord",
    "PaymentStatus",
    "Present",
    "ResetResult",
    "RestoreResult",
    "SavedSnapshotInfo",
    "ServiceType",
    "Snapshot",
    "SnapshotScope",
    "SystemClock",
    "days_remaining",
    "evaluate_cycle",
    "expiry_state",
    "is_cycle_due",
]
