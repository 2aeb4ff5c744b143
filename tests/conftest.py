"""
Pytest fixtures for the billing kernel test suite.

Provides:
- In-memory SQLite engine/session per test (one shared connection, so the
  scheduler thread and the test see the same data)
- A DeterministicClock
- Row factories for customers, packages, bundles and settings
- Structured log capture
"""

import json
import logging
from datetime import date, datetime
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

import billing_kernel.models  # noqa: F401
from billing_kernel.db.base import Base
from billing_kernel.db.engine import build_engine
from billing_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.models import Bundle, Customer, Package, Setting
from billing_kernel.services.notifications import NotificationSurface

# Default "today" for service tests: day 10 of March 2024.
TODAY = datetime(2024, 3, 10, 12, 0, 0)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "monthly_reset_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture
def engine():
    eng = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def clock():
    # Use naive datetimes for SQLite compatibility (SQLite strips tzinfo)
    return DeterministicClock(fixed_time=TODAY)


# =============================================================================
# Row factories
# =============================================================================


@pytest.fixture
def make_customer(session):
    counter = iter(range(1, 10_000))

    def _make(
        name: str | None = None,
        status: str = "paid",
        service_type: str = "cable",
        package: str = "Basic Cable",
        last_recharge: date | None = None,
        excluded: bool | None = False,
        deleted: bool = False,
        customer_id: str | None = None,
        mobile: str | None = None,
    ) -> Customer:
        n = next(counter)
        customer = Customer(
            id=customer_id or f"cust-{n:03d}",
            name=name or f"Customer {n}",
            status=status,
            service_type=service_type,
            package=package,
            address=f"{n} Main Road",
            mobile=mobile,
            last_recharge=last_recharge,
            exclude_from_reset=excluded,
            deleted=deleted,
        )
        session.add(customer)
        session.flush()
        return customer

    return _make


@pytest.fixture
def make_package(session):
    def _make(
        name: str,
        price: str,
        service_type: str = "cable",
        my_profit: str | None = None,
        package_id: str | None = None,
    ) -> Package:
        package = Package(
            id=package_id or f"pkg-{name.lower().replace(' ', '-')}",
            name=name,
            price=price,
            service_type=service_type,
            features="",
            active=True,
            my_profit=my_profit,
        )
        session.add(package)
        session.flush()
        return package

    return _make


@pytest.fixture
def make_bundle(session):
    def _make(name: str, items: str, bundle_id: str | None = None) -> Bundle:
        bundle = Bundle(id=bundle_id or f"bundle-{name.lower()}", name=name, items=items)
        session.add(bundle)
        session.flush()
        return bundle

    return _make


@pytest.fixture
def put_setting(session):
    def _put(key: str, value: str) -> None:
        session.merge(Setting(key=key, value=value))
        session.flush()

    return _put


# =============================================================================
# Notification surface
# =============================================================================


class RecordingSurface(NotificationSurface):
    """Records notifications; answers confirmations from a fixed reply."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.notifications: list[tuple[str, str]] = []
        self.prompts: list[tuple[str, str]] = []

    def notify(self, title: str, message: str) -> None:
        self.notifications.append((title, message))

    def confirm(self, title: str, message: str) -> bool:
        self.prompts.append((title, message))
        return self.answer


@pytest.fixture
def surface():
    return RecordingSurface()
