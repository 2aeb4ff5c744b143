"""
CustomerSelector -- read access to customers with their expiry status.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import select

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.domain.dtos import CustomerRecord
from billing_kernel.domain.expiry import (
    BILLING_WINDOW_DAYS,
    EXPIRING_SOON_DAYS,
    ExpiryState,
    days_remaining,
    describe_expiry,
    expiry_state,
)
from billing_kernel.domain.values import PaymentStatus, ServiceType
from billing_kernel.exceptions import CustomerNotFoundError
from billing_kernel.models.customer import Customer
from billing_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class CustomerExpiry:
    customer: CustomerRecord
    days_remaining: int | None
    state: ExpiryState
    description: str


class CustomerSelector(BaseSelector[Customer]):

    def get(self, customer_id: str) -> CustomerRecord:
        with translate_store_errors("customer_get", table="customers"):
            customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer.to_dto()

    def list_customers(
        self,
        service_type: ServiceType | None = None,
        status: PaymentStatus | None = None,
        include_deleted: bool = False,
    ) -> list[CustomerRecord]:
        stmt = select(Customer).order_by(Customer.name, Customer.id)
        if not include_deleted:
            stmt = stmt.where(Customer.deleted == False)  # noqa: E712
        if service_type is not None:
            stmt = stmt.where(Customer.service_type == service_type.value)
        if status is not None:
            stmt = stmt.where(Customer.status == status.value)
        with translate_store_errors("customer_list", table="customers"):
            rows = self.session.execute(stmt).scalars().all()
        return [row.to_dto() for row in rows]

    def with_expiry(
        self,
        today: date,
        service_type: ServiceType | None = None,
        window_days: int = BILLING_WINDOW_DAYS,
        soon_threshold: int = EXPIRING_SOON_DAYS,
    ) -> list[CustomerExpiry]:
        """Active customers with their remaining days, soonest expiry first."""
        result = []
        for customer in self.list_customers(service_type=service_type):
            remaining = days_remaining(customer.last_payment_date, today, window_days)
            result.append(
                CustomerExpiry(
                    customer=customer,
                    days_remaining=remaining,
                    state=expiry_state(remaining, soon_threshold),
                    description=describe_expiry(remaining),
                )
            )
        # Unknown expiry sorts last.
        result.sort(key=lambda e: (e.days_remaining is None, e.days_remaining or 0))
        return result
