"""Tests for BillingSummarySelector and the amount helpers."""

from datetime import date
from decimal import Decimal

import pytest

from billing_kernel.domain.values import PaymentStatus, ServiceType
from billing_kernel.exceptions import InvalidDateRangeError
from billing_kernel.selectors.billing_summary_selector import (
    BillingSummarySelector,
    collection_rate,
    format_amount,
    parse_amount,
)


@pytest.fixture
def catalog(make_package):
    make_package("Basic Cable", "₹300", my_profit="₹100")
    make_package("Fast Internet", "₹600", service_type="internet", my_profit="150")


@pytest.fixture
def customers(make_customer):
    make_customer("A", package="Basic Cable", last_recharge=date(2024, 3, 1))
    make_customer(
        "B", service_type="internet", package="fast internet",
        last_recharge=date(2024, 2, 20),
    )
    make_customer("C", status="unpaid", package="Basic Cable, Unknown")
    make_customer("Binned", deleted=True)


class TestAmounts:

    @pytest.mark.parametrize(
        "raw, expected",
        [("₹300", "300"), ("₹1,250.50", "1250.50"), ("", "0"), (None, "0"), ("free", "0")],
    )
    def test_parse_amount(self, raw, expected):
        assert parse_amount(raw) == Decimal(expected)

    def test_format_amount(self):
        assert format_amount(Decimal("300")) == "₹300.00"

    @pytest.mark.parametrize(
        "paid, total, rate",
        [(2, 3, 67), (1, 8, 13), (1, 2, 50), (0, 0, 0), (5, 5, 100)],
    )
    def test_collection_rate_rounds_half_up(self, paid, total, rate):
        assert collection_rate(paid, total) == rate


class TestSummarize:

    def test_summary_figures(self, session, catalog, customers):
        summary = BillingSummarySelector(session).summarize()

        assert (summary.total, summary.paid, summary.unpaid) == (3, 2, 1)
        assert (summary.cable, summary.internet) == (2, 1)
        assert summary.collection_rate == 67
        assert summary.revenue.total == Decimal("900")
        assert summary.revenue.cable == Decimal("300")
        assert summary.revenue.internet == Decimal("600")
        assert summary.profit.total == Decimal("250")
        assert summary.package_popularity == (
            ("Basic Cable", 2),
            ("Unknown", 1),
            ("fast internet", 1),
        )
        assert [due.customer.name for due in summary.unpaid_dues] == ["C"]
        assert summary.total_unpaid_amount == Decimal("300")

    def test_filter_by_type_and_status(self, session, catalog, customers):
        summary = BillingSummarySelector(session).summarize(
            service_type=ServiceType.CABLE, status=PaymentStatus.PAID,
        )
        assert summary.total == 1
        assert summary.collection_rate == 100

    def test_date_range_drops_customers_without_recharge(self, session, catalog, customers):
        summary = BillingSummarySelector(session).summarize(
            start=date(2024, 2, 25), end=date(2024, 3, 31),
        )
        assert summary.total == 1
        assert summary.revenue.total == Decimal("300")

    def test_open_ended_range(self, session, catalog, customers):
        summary = BillingSummarySelector(session).summarize(end=date(2024, 2, 28))
        assert summary.total == 1
        assert summary.internet == 1

    def test_inverted_range(self, session):
        with pytest.raises(InvalidDateRangeError):
            BillingSummarySelector(session).summarize(
                start=date(2024, 3, 10), end=date(2024, 3, 1),
            )

    def test_empty_store(self, session):
        summary = BillingSummarySelector(session).summarize()
        assert summary.total == 0
        assert summary.collection_rate == 0
        assert summary.package_popularity == ()


def test_overdue_reminders(session, catalog, customers, make_customer):
    make_customer("D", status="unpaid", package="Fast Internet", mobile="9811111111")

    lines = BillingSummarySelector(session).overdue_reminders()

    assert lines == ["C (No Mobile) - ₹300.00", "D (9811111111) - ₹600.00"]


def test_duplicate_catalog_names_first_wins(session, make_package, make_customer):
    make_package("Gold", "₹100", package_id="pkg-a")
    make_package("GOLD", "₹900", package_id="pkg-b")
    make_customer("A", status="unpaid", package="gold")

    summary = BillingSummarySelector(session).summarize()

    assert summary.total_unpaid_amount == Decimal("100")
