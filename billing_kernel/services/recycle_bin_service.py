"""
RecycleBinService -- soft delete and recovery of customers.

A soft-deleted customer keeps its row with ``deleted = true`` and drops out
of every engine operation (reset, auto-expire, eligibility queries) until
restored.  Hard delete is not offered here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import CustomerRecord
from billing_kernel.domain.values import AuditAction
from billing_kernel.exceptions import CustomerNotFoundError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.customer import Customer
from billing_kernel.services.audit_log import AuditLog
from billing_kernel.services.base import BaseService

logger = get_logger("services.recycle_bin")

SOFT_DELETE_DETAILS = "Moved to Recycle Bin"
RESTORE_DETAILS = "Restored from Recycle Bin"


class RecycleBinService(BaseService[Customer]):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_log: AuditLog | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit_log or AuditLog(session, self._clock)

    def _get(self, customer_id: str) -> Customer:
        with translate_store_errors("recycle_bin_get", table="customers"):
            customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer

    def _set_deleted(
        self,
        customer_id: str,
        deleted: bool,
        action: AuditAction,
        details: str,
    ) -> CustomerRecord:
        with LogContext.bind(customer_id=customer_id):
            customer = self._get(customer_id)
            if bool(customer.deleted) == deleted:
                return customer.to_dto()

            customer.deleted = deleted
            with translate_store_errors("recycle_bin_update", table="customers"):
                self.session.flush()
            self._audit.record(customer_id, action, details)
            logger.info("customer_recycled" if deleted else "customer_recovered")
            return customer.to_dto()

    def soft_delete(self, customer_id: str) -> CustomerRecord:
        """
        Move a customer to the recycle bin.  Repeating it is a no-op.

        Raises:
            CustomerNotFoundError: No such customer.
        """
        return self._set_deleted(customer_id, True, AuditAction.DELETED, SOFT_DELETE_DETAILS)

    def restore(self, customer_id: str) -> CustomerRecord:
        """
        Bring a customer back from the recycle bin.

        Raises:
            CustomerNotFoundError: No such customer.
        """
        return self._set_deleted(customer_id, False, AuditAction.RESTORED, RESTORE_DETAILS)

    def list_deleted(self) -> list[CustomerRecord]:
        with translate_store_errors("recycle_bin_list", table="customers"):
            rows = self.session.execute(
                select(Customer)
                .where(Customer.deleted == True)  # noqa: E712
                .order_by(Customer.name, Customer.id)
            ).scalars().all()
        return [row.to_dto() for row in rows]
