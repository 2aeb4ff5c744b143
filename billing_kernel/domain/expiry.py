"""
ExpiryEvaluator -- days left on a customer's recharge.

Pure functions, ZERO I/O.  "Today" is always passed in by the caller (from
an injected Clock); nothing here reads the system time.

A recharge buys a fixed window of calendar days starting on the recharge
date.  Both the expiry date and today are compared as calendar dates, so
results are whole days and never depend on the time of day.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import Enum

BILLING_WINDOW_DAYS = 30
EXPIRING_SOON_DAYS = 5


class ExpiryState(str, Enum):
    UNKNOWN = "unknown"
    EXPIRED = "expired"
    EXPIRES_TODAY = "expires_today"
    EXPIRING_SOON = "expiring_soon"
    ACTIVE = "active"


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def expiry_date(
    last_payment_date: date | datetime | None,
    window_days: int = BILLING_WINDOW_DAYS,
) -> date | None:
    if last_payment_date is None:
        return None
    return _as_date(last_payment_date) + timedelta(days=window_days)


def days_remaining(
    last_payment_date: date | datetime | None,
    today: date | datetime,
    window_days: int = BILLING_WINDOW_DAYS,
) -> int | None:
    """
    Whole days until the recharge window closes.

    Returns:
        None when no payment date is on record (unknown, neither expired
        nor current); a negative number when the window closed that many
        days ago; 0 when it closes today.
    """
    expires = expiry_date(last_payment_date, window_days)
    if expires is None:
        return None
    return (expires - _as_date(today)).days


def is_expired(
    last_payment_date: date | datetime | None,
    today: date | datetime,
    window_days: int = BILLING_WINDOW_DAYS,
) -> bool:
    remaining = days_remaining(last_payment_date, today, window_days)
    return remaining is not None and remaining < 0


def expiry_state(
    remaining: int | None,
    soon_threshold: int = EXPIRING_SOON_DAYS,
) -> ExpiryState:
    """Classify a ``days_remaining`` result."""
    if remaining is None:
        return ExpiryState.UNKNOWN
    if remaining < 0:
        return ExpiryState.EXPIRED
    if remaining == 0:
        return ExpiryState.EXPIRES_TODAY
    if remaining <= soon_threshold:
        return ExpiryState.EXPIRING_SOON
    return ExpiryState.ACTIVE


def describe_expiry(remaining: int | None) -> str:
    """Short label for a ``days_remaining`` result."""
    if remaining is None:
        return "No recharge on record"
    if remaining < 0:
        return f"Expired {abs(remaining)} days ago"
    if remaining == 0:
        return "Expires Today"
    return f"{remaining} days remaining"
