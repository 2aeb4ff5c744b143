"""
AutoExpireService -- paid customers whose billing window has lapsed.

Selects paid, non-deleted customers whose ``days_remaining`` is negative,
transitions them to unpaid in one batch and records one ``AutoExpire``
history entry each.  Not gated by a month key: re-running finds nobody new
because expired customers are no longer paid.  ``exclude_from_reset`` does
not apply here.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.db.schema import SchemaProbe
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import ExpireResult
from billing_kernel.domain.expiry import BILLING_WINDOW_DAYS, days_remaining
from billing_kernel.domain.values import AuditAction, PaymentStatus
from billing_kernel.logging_config import get_logger
from billing_kernel.models.customer import Customer
from billing_kernel.services.audit_log import AuditLog
from billing_kernel.services.base import BaseService
from billing_kernel.services.reset_service import CUSTOMER_TABLE, chunked

logger = get_logger("services.auto_expire")


def expire_details(last_payment: date) -> str:
    return (
        "Status updated to Unpaid due to expiration "
        f"(Last Recharge: {last_payment.isoformat()})"
    )


class AutoExpireService(BaseService[Customer]):
    """Flush-only: the caller commits."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_log: AuditLog | None = None,
        window_days: int = BILLING_WINDOW_DAYS,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit_log or AuditLog(session, self._clock)
        self._window_days = window_days

    def find_expired(self) -> list[tuple[str, date]]:
        """(id, last recharge) of every paid customer past the window."""
        SchemaProbe(self.session).require(
            CUSTOMER_TABLE, ("id", "status", "deleted", "last_recharge"),
        )
        today = self._clock.today()
        with translate_store_errors("auto_expire_select", table=CUSTOMER_TABLE):
            rows = self.session.execute(
                select(Customer.id, Customer.last_recharge)
                .where(
                    Customer.status == PaymentStatus.PAID.value,
                    Customer.deleted == False,  # noqa: E712
                    Customer.last_recharge.is_not(None),
                )
                .order_by(Customer.id)
            ).all()
        expired = []
        for customer_id, last in rows:
            remaining = days_remaining(last, today, self._window_days)
            if remaining is not None and remaining < 0:
                expired.append((customer_id, last))
        return expired

    def run_auto_expire(self) -> ExpireResult:
        expired = self.find_expired()
        if not expired:
            logger.info("auto_expire_completed", extra={"count": 0})
            return ExpireResult(count=0)

        ids = [customer_id for customer_id, _ in expired]
        with translate_store_errors("auto_expire_update", table=CUSTOMER_TABLE):
            for chunk in chunked(ids):
                self.session.execute(
                    update(Customer)
                    .where(Customer.id.in_(chunk))
                    .values({Customer.status: PaymentStatus.UNPAID.value}),
                    execution_options={"synchronize_session": "fetch"},
                )
            self.session.flush()

        failures = self._audit.record_many(
            ((customer_id, expire_details(last)) for customer_id, last in expired),
            AuditAction.AUTO_EXPIRE,
        )
        logger.info(
            "auto_expire_completed",
            extra={"count": len(ids), "audit_failures": failures},
        )
        return ExpireResult(count=len(ids), customer_ids=tuple(ids), audit_failures=failures)
