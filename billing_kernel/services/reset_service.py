"""
MonthlyResetService -- the billing cycle turnover.

Responsibility:
    Transition every eligible paid customer to unpaid, once per month key,
    and record one ``MonthlyReset`` history entry per transitioned customer.

Eligibility:
    status = paid AND deleted = false AND exclude_from_reset IS NOT TRUE
    (NULL in ``exclude_from_reset`` reads as "not excluded").

Sequence (one caller-owned transaction):
    1. Month key already reset          -> count 0, already_reset
    2. Probe schema                     -> SchemaMissingError, nothing changed
    3. Select eligible ids
    4. Claim the cycle (CAS on marker)  -> CycleAlreadyClaimedError, nothing changed
    5. Batch UPDATE to unpaid           -> any failure propagates; the caller
                                           rolls back marker and statuses together
    6. Audit entries                    -> failures logged, never fatal

Failure modes:
    - SchemaMissingError: ``customers`` or one of the filter columns is not
      provisioned (names the table and column).
    - StoreUnavailableError: the store could not be reached.
    - CycleAlreadyClaimedError: another run advanced the marker first.
"""

from __future__ import annotations

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.db.schema import SchemaProbe
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import CycleConfig, ResetResult
from billing_kernel.domain.values import AuditAction, PaymentStatus
from billing_kernel.logging_config import get_logger
from billing_kernel.models.customer import Customer
from billing_kernel.services.audit_log import AuditLog
from billing_kernel.services.base import BaseService
from billing_kernel.services.settings_service import SettingsService

logger = get_logger("services.reset")

CUSTOMER_TABLE = "customers"
RESET_FILTER_COLUMNS = ("id", "status", "deleted", "exclude_from_reset")

# Keeps each IN list well under driver parameter limits.
UPDATE_CHUNK_SIZE = 500


def not_excluded():
    """SQL criterion: exclude_from_reset IS NOT TRUE."""
    return or_(
        Customer.exclude_from_reset == False,  # noqa: E712
        Customer.exclude_from_reset.is_(None),
    )


def reset_details(due_day: int, silent: bool) -> str:
    suffix = " [Auto]" if silent else ""
    return f"Status changed to Unpaid (Cycle Day: {due_day}){suffix}"


def chunked(ids: list[str], size: int = UPDATE_CHUNK_SIZE):
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


class MonthlyResetService(BaseService[Customer]):
    """
    Runs the monthly reset.  Flush-only: the caller commits.

    Guarantees:
        - At most one reset per month key (marker check plus CAS claim).
        - Excluded and soft-deleted customers are never transitioned.
        - Audit failures never undo the transition.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_log: AuditLog | None = None,
        settings: SettingsService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit_log or AuditLog(session, self._clock)
        self._settings = settings or SettingsService(session)

    def eligible_customer_ids(self) -> list[str]:
        """Ids the next reset would transition."""
        SchemaProbe(self.session).require(CUSTOMER_TABLE, RESET_FILTER_COLUMNS)
        with translate_store_errors(
            "monthly_reset_select", table=CUSTOMER_TABLE, column="exclude_from_reset",
        ):
            return list(
                self.session.execute(
                    select(Customer.id)
                    .where(
                        Customer.status == PaymentStatus.PAID.value,
                        Customer.deleted == False,  # noqa: E712
                        not_excluded(),
                    )
                    .order_by(Customer.id)
                ).scalars()
            )

    def run_monthly_reset(
        self,
        silent: bool = False,
        config: CycleConfig | None = None,
    ) -> ResetResult:
        """
        Reset the current billing cycle.

        Args:
            silent: True when triggered by the scheduler without a person
                confirming; recorded in the history details.
            config: Cycle configuration already read by the caller.  Read
                from the settings store when omitted.

        Returns:
            ResetResult with the number of customers transitioned.
        """
        config = config or self._settings.load_cycle_config()
        month_key = self._clock.month_key()

        if config.last_reset == month_key:
            logger.info(
                "monthly_reset_skipped",
                extra={"month_key": str(month_key), "reason": "already_reset"},
            )
            return ResetResult(count=0, month_key=month_key, already_reset=True)

        ids = self.eligible_customer_ids()

        self._settings.claim_cycle(
            self._settings.expected_marker(config, month_key), month_key,
        )

        if not ids:
            logger.info(
                "monthly_reset_completed",
                extra={"month_key": str(month_key), "count": 0, "silent": silent},
            )
            return ResetResult(count=0, month_key=month_key)

        with translate_store_errors(
            "monthly_reset_update", table=CUSTOMER_TABLE, column="exclude_from_reset",
        ):
            for chunk in chunked(ids):
                self.session.execute(
                    update(Customer)
                    .where(Customer.id.in_(chunk))
                    .values({Customer.status: PaymentStatus.UNPAID.value}),
                    execution_options={"synchronize_session": "fetch"},
                )
            self.session.flush()

        details = reset_details(config.due_day, silent)
        failures = self._audit.record_many(
            ((customer_id, details) for customer_id in ids),
            AuditAction.MONTHLY_RESET,
        )

        logger.info(
            "monthly_reset_completed",
            extra={
                "month_key": str(month_key),
                "count": len(ids),
                "silent": silent,
                "due_day": config.due_day,
                "audit_failures": failures,
            },
        )
        return ResetResult(
            count=len(ids),
            month_key=month_key,
            customer_ids=tuple(ids),
            audit_failures=failures,
        )
