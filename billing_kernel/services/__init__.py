"""
billing_kernel.services -- write-side services.

Every service takes the caller's Session and flushes only; the cycle
coordinator, the scheduler tick, the CLI or a test owns commit/rollback.
"""

from billing_kernel.services.audit_log import AuditLog
from billing_kernel.services.auto_expire_service import AutoExpireService
from billing_kernel.services.cycle_coordinator import (
    BillingCycleCoordinator,
    CycleOutcome,
    CycleRunResult,
    CycleTrigger,
)
from billing_kernel.services.cycle_scheduler import CycleScheduler
from billing_kernel.services.eligibility_service import EligibilityService
from billing_kernel.services.notifications import (
    LoggingNotificationSurface,
    NotificationSurface,
)
from billing_kernel.services.recycle_bin_service import RecycleBinService
from billing_kernel.services.reset_service import MonthlyResetService
from billing_kernel.services.restore_service import RestoreService
from billing_kernel.services.settings_service import SettingsService
from billing_kernel.services.snapshot_archive_service import SnapshotArchiveService

__all__ = [
    "AuditLog",
    "AutoExpireService",
    "BillingCycleCoordinator",
    "CycleOutcome",
    "CycleRunResult",
    "CycleScheduler",
    "CycleTrigger",
    "EligibilityService",
    "LoggingNotificationSurface",
    "MonthlyResetService",
    "NotificationSurface",
    "RecycleBinService",
    "RestoreService",
    "SettingsService",
    "SnapshotArchiveService",
]
