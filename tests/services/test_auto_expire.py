"""Tests for AutoExpireService."""

from datetime import date

from sqlalchemy import select

from billing_kernel.models import AuditEntry, Customer
from billing_kernel.services.auto_expire_service import AutoExpireService, expire_details


def test_expires_paid_customers_past_window(session, clock, make_customer):
    # clock: 2024-03-10
    lapsed = make_customer("Lapsed", last_recharge=date(2024, 2, 4))
    due_today = make_customer("Due today", last_recharge=date(2024, 2, 9))
    fresh = make_customer("Fresh", last_recharge=date(2024, 3, 1))
    unknown = make_customer("Unknown", last_recharge=None)
    excluded = make_customer("Excluded", last_recharge=date(2024, 1, 1), excluded=True)
    binned = make_customer("Binned", last_recharge=date(2024, 1, 1), deleted=True)

    result = AutoExpireService(session, clock).run_auto_expire()

    assert set(result.customer_ids) == {lapsed.id, excluded.id}
    assert result.count == 2
    statuses = dict(session.execute(select(Customer.id, Customer.status)).all())
    assert statuses[lapsed.id] == "unpaid"
    assert statuses[excluded.id] == "unpaid"
    for kept in (due_today, fresh, unknown, binned):
        assert statuses[kept.id] == "paid"


def test_history_names_last_recharge(session, clock, make_customer):
    customer = make_customer("Lapsed", last_recharge=date(2024, 2, 4))

    AutoExpireService(session, clock).run_auto_expire()

    entry = session.execute(select(AuditEntry)).scalar_one()
    assert entry.customer_id == customer.id
    assert entry.action == "AutoExpire"
    assert entry.details == expire_details(date(2024, 2, 4))
    assert "(Last Recharge: 2024-02-04)" in entry.details


def test_rerun_finds_nobody(session, clock, make_customer):
    make_customer("Lapsed", last_recharge=date(2024, 2, 4))
    service = AutoExpireService(session, clock)
    service.run_auto_expire()

    second = service.run_auto_expire()

    assert second.count == 0
    assert len(session.execute(select(AuditEntry)).scalars().all()) == 1


def test_window_follows_the_clock(session, clock, make_customer):
    make_customer("Fresh", last_recharge=date(2024, 3, 1))
    service = AutoExpireService(session, clock)
    assert service.find_expired() == []

    clock.advance_days(31)

    assert [last for _, last in service.find_expired()] == [date(2024, 3, 1)]
