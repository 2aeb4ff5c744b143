"""
CycleGate -- has a new billing cycle started, and is a reset owed?

Pure evaluation, ZERO I/O (same contract as the batch schedule evaluator:
the caller supplies both the configuration and "today").

Rule:
    due  <=>  today.day >= due_day  AND  month_key(today) != last_reset

``due_day`` is validated to 1..28 when the configuration is built, so every
calendar month reaches it.
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from billing_kernel.domain.dtos import CycleConfig
from billing_kernel.domain.values import MonthKey


class CycleDecision(str, Enum):
    NOT_YET_DUE = "not_yet_due"
    ALREADY_RESET = "already_reset"
    DUE = "due"


def evaluate_cycle(config: CycleConfig, today: date) -> CycleDecision:
    """Decide the cycle state for ``today`` and say why."""
    if today.day < config.due_day:
        return CycleDecision.NOT_YET_DUE
    if config.last_reset == MonthKey.of(today):
        return CycleDecision.ALREADY_RESET
    return CycleDecision.DUE


def is_cycle_due(config: CycleConfig, today: date) -> bool:
    return evaluate_cycle(config, today) is CycleDecision.DUE


def is_reset_done_for(config: CycleConfig, today: date) -> bool:
    """True when the current month key has already been reset."""
    return config.last_reset == MonthKey.of(today)
