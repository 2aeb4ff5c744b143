"""
BillingSummarySelector -- collection and revenue figures for a set of
customers.

Amounts are derived from the package catalog at read time: each customer
owes the sum of the prices of the packages it subscribes to.  Package names
match the catalog case-insensitively after trimming; currency symbols and
other non-numeric characters are stripped from stored prices ("₹300" ->
300).  A package missing from the catalog contributes nothing.

Only customers outside the recycle bin are counted.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import select

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.domain.dtos import CustomerRecord, PackageRecord
from billing_kernel.domain.values import PaymentStatus, ServiceType
from billing_kernel.exceptions import InvalidDateRangeError
from billing_kernel.models.catalog import Package
from billing_kernel.models.customer import Customer
from billing_kernel.selectors.base import BaseSelector

CURRENCY_SYMBOL = "₹"
_NON_NUMERIC = re.compile(r"[^0-9.]")
_CENTS = Decimal("0.01")


def parse_amount(value: str | None) -> Decimal:
    """Numeric part of a display price; 0 when there is none."""
    cleaned = _NON_NUMERIC.sub("", value or "")
    if not cleaned:
        return Decimal("0")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")


def format_amount(amount: Decimal) -> str:
    return f"{CURRENCY_SYMBOL}{amount.quantize(_CENTS)}"


def collection_rate(paid: int, total: int) -> int:
    """Paid share as a whole percent, halves rounded up."""
    if not total:
        return 0
    percent = Decimal(paid * 100) / Decimal(total)
    return int(percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class AmountBreakdown:
    total: Decimal = Decimal("0")
    cable: Decimal = Decimal("0")
    internet: Decimal = Decimal("0")


@dataclass(frozen=True)
class CustomerDue:
    customer: CustomerRecord
    amount: Decimal


@dataclass(frozen=True)
class BillingSummary:
    total: int
    paid: int
    unpaid: int
    cable: int
    internet: int
    collection_rate: int
    revenue: AmountBreakdown
    profit: AmountBreakdown
    package_popularity: tuple[tuple[str, int], ...]
    unpaid_dues: tuple[CustomerDue, ...]

    @property
    def total_unpaid_amount(self) -> Decimal:
        return sum((due.amount for due in self.unpaid_dues), Decimal("0"))


class PackagePriceBook:
    """Case-insensitive package lookup for price and profit."""

    def __init__(self, packages: list[PackageRecord]):
        self._by_name: dict[str, PackageRecord] = {}
        for package in packages:
            # First entry wins on duplicate names.
            self._by_name.setdefault(package.name.strip().lower(), package)

    def _sum(self, names: tuple[str, ...], profit: bool) -> Decimal:
        total = Decimal("0")
        for name in names:
            package = self._by_name.get(name.strip().lower())
            if package is None:
                continue
            total += parse_amount(package.my_profit if profit else package.price)
        return total

    def price_of(self, customer: CustomerRecord) -> Decimal:
        return self._sum(customer.packages, profit=False)

    def profit_of(self, customer: CustomerRecord) -> Decimal:
        return self._sum(customer.packages, profit=True)


class BillingSummarySelector(BaseSelector[Customer]):

    def _customers(
        self,
        service_type: ServiceType | None,
        status: PaymentStatus | None,
        start: date | None,
        end: date | None,
    ) -> list[CustomerRecord]:
        stmt = (
            select(Customer)
            .where(Customer.deleted == False)  # noqa: E712
            .order_by(Customer.name, Customer.id)
        )
        if service_type is not None:
            stmt = stmt.where(Customer.service_type == service_type.value)
        if status is not None:
            stmt = stmt.where(Customer.status == status.value)
        if start is not None or end is not None:
            stmt = stmt.where(Customer.last_recharge.is_not(None))
        if start is not None:
            stmt = stmt.where(Customer.last_recharge >= start)
        if end is not None:
            stmt = stmt.where(Customer.last_recharge <= end)
        with translate_store_errors("billing_summary_customers", table="customers"):
            return [c.to_dto() for c in self.session.execute(stmt).scalars()]

    def price_book(self) -> PackagePriceBook:
        with translate_store_errors("billing_summary_packages", table="packages"):
            packages = [
                p.to_dto()
                for p in self.session.execute(select(Package).order_by(Package.id)).scalars()
            ]
        return PackagePriceBook(packages)

    def summarize(
        self,
        service_type: ServiceType | None = None,
        status: PaymentStatus | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> BillingSummary:
        """
        Figures for customers matching the filters.

        ``start``/``end`` filter on the last recharge date (inclusive); when
        either is given, customers without a recharge on record are left out.

        Raises:
            InvalidDateRangeError: ``start`` is after ``end``.
        """
        if start is not None and end is not None and start > end:
            raise InvalidDateRangeError(start, end)

        customers = self._customers(service_type, status, start, end)
        book = self.price_book()

        total = len(customers)
        paid = [c for c in customers if c.status is PaymentStatus.PAID]
        unpaid = [c for c in customers if c.status is PaymentStatus.UNPAID]
        rate = collection_rate(len(paid), total)

        def breakdown(amount_of) -> AmountBreakdown:
            cable = sum(
                (amount_of(c) for c in paid if c.service_type is ServiceType.CABLE),
                Decimal("0"),
            )
            internet = sum(
                (amount_of(c) for c in paid if c.service_type is ServiceType.INTERNET),
                Decimal("0"),
            )
            return AmountBreakdown(total=cable + internet, cable=cable, internet=internet)

        popularity = Counter(name for c in customers for name in c.packages)
        dues = sorted(
            (CustomerDue(c, book.price_of(c)) for c in unpaid),
            key=lambda due: due.amount,
            reverse=True,
        )

        return BillingSummary(
            total=total,
            paid=len(paid),
            unpaid=len(unpaid),
            cable=sum(1 for c in customers if c.service_type is ServiceType.CABLE),
            internet=sum(1 for c in customers if c.service_type is ServiceType.INTERNET),
            collection_rate=rate,
            revenue=breakdown(book.price_of),
            profit=breakdown(book.profit_of),
            package_popularity=tuple(
                sorted(popularity.items(), key=lambda item: (-item[1], item[0]))
            ),
            unpaid_dues=tuple(dues),
        )

    def overdue_reminders(self) -> list[str]:
        """One line per unpaid customer: ``Name (mobile) - ₹total``."""
        book = self.price_book()
        lines = []
        for customer in self._customers(None, PaymentStatus.UNPAID, None, None):
            mobile = customer.mobile or "No Mobile"
            amount = format_amount(book.price_of(customer))
            lines.append(f"{customer.name} ({mobile}) - {amount}")
        return lines
