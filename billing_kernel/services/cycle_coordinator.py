"""
BillingCycleCoordinator -- the single entry point for a billing cycle run.

Two call sites share ``evaluate_and_act``: the hourly scheduler tick
(``CycleTrigger.SCHEDULED``) and a person asking for a reset
(``CycleTrigger.MANUAL``).

    scheduled:  gate(due day, month key) -> auto reset enabled ? silent reset
                                                          : confirm -> reset
    manual:     gate(month key only)     -> confirmed ? reset : confirm -> reset

Single-writer discipline:
    - A process-wide lock serializes "read config -> decide -> act ->
      persist config", so the scheduler thread and a manual call in the
      same process never interleave.
    - The lock is NOT held while the operator answers a confirmation.  The
      gate is evaluated again after the answer, under the lock, so a reset
      made by someone else in the meantime is reported as already done.
    - Across processes the reset claims the month key with a
      compare-and-swap on the settings row (see SettingsService.claim_cycle).

The coordinator owns the transaction: one session per locked pass,
committed on success and rolled back on any failure, so a failed reset
leaves both the customer statuses and the reset marker as they were.
Completion is announced only after the commit succeeds.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.cycle_gate import CycleDecision, evaluate_cycle
from billing_kernel.domain.dtos import MIN_DUE_DAY, ResetResult
from billing_kernel.exceptions import (
    BillingKernelError,
    ConcurrencyError,
    SchemaMissingError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.notifications import NotificationSurface
from billing_kernel.services.reset_service import MonthlyResetService
from billing_kernel.services.settings_service import SettingsService

logger = get_logger("services.cycle_coordinator")

_CYCLE_LOCK = threading.Lock()


class CycleTrigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class CycleOutcome(str, Enum):
    NOT_DUE = "not_due"
    ALREADY_RESET = "already_reset"
    DECLINED = "declined"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class CycleRunResult:
    outcome: CycleOutcome
    reset: ResetResult | None = None
    message: str = ""
    error_code: str | None = None


@dataclass(frozen=True)
class _Pass:
    """What one locked pass decided.

    Exactly one of ``result`` and ``prompt`` is set.  ``notice`` is sent
    once the pass's transaction has ended.
    """

    result: CycleRunResult | None = None
    notice: tuple[str, str] | None = None
    prompt: tuple[str, str] | None = None


class BillingCycleCoordinator:
    """
    Decides whether a billing cycle reset is owed and carries it out.

    Args:
        session_factory: Returns a new Session per run.
        surface: Where notifications and confirmations go.
        clock: Time source; the only notion of "today".
        default_due_day: Due day used when none has been saved.
        default_auto_reset: Auto reset setting used when none has been saved.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        surface: NotificationSurface,
        clock: Clock | None = None,
        default_due_day: int = MIN_DUE_DAY,
        default_auto_reset: bool = False,
    ):
        self._session_factory = session_factory
        self._surface = surface
        self._clock = clock or SystemClock()
        self._default_due_day = default_due_day
        self._default_auto_reset = default_auto_reset

    def evaluate_and_act(
        self,
        trigger: CycleTrigger,
        confirmed: bool = False,
    ) -> CycleRunResult:
        """
        Evaluate the cycle gate for ``trigger`` and reset when owed.

        Args:
            trigger: Who is asking.
            confirmed: The operator already approved (manual runs only;
                e.g. the CLI's ``--yes``).  Skips the confirmation prompt.
        """
        with LogContext.bind(run_id=str(uuid4()), trigger=trigger.value):
            step = self._locked_pass(trigger, confirmed)
            if step.prompt is None:
                return step.result

            title, prompt = step.prompt
            if not self._surface.confirm(title, prompt):
                logger.info("cycle_reset_declined")
                return CycleRunResult(CycleOutcome.DECLINED, message="Reset postponed.")

            step = self._locked_pass(trigger, confirmed=True)
            return step.result

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _locked_pass(self, trigger: CycleTrigger, confirmed: bool) -> _Pass:
        with _CYCLE_LOCK:
            session = self._session_factory()
            try:
                step = self._run(session, trigger, confirmed)
                if step.result is not None and step.result.outcome is CycleOutcome.COMPLETED:
                    session.commit()
                else:
                    session.rollback()
            except (BillingKernelError, SQLAlchemyError) as exc:
                session.rollback()
                return _Pass(result=self._failed(exc))
            finally:
                session.close()

        if step.notice is not None:
            self._surface.notify(*step.notice)
        return step

    def _run(
        self,
        session: Session,
        trigger: CycleTrigger,
        confirmed: bool,
    ) -> _Pass:
        settings = SettingsService(
            session,
            default_due_day=self._default_due_day,
            default_auto_reset=self._default_auto_reset,
        )
        config = settings.load_cycle_config()
        today = self._clock.today()
        decision = evaluate_cycle(config, today)
        manual = trigger is CycleTrigger.MANUAL

        if decision is CycleDecision.NOT_YET_DUE and not manual:
            logger.debug(
                "cycle_not_due",
                extra={"due_day": config.due_day, "today": today},
            )
            return _Pass(result=CycleRunResult(CycleOutcome.NOT_DUE))

        if config.last_reset == self._clock.month_key():
            message = f"The billing cycle for {config.last_reset} has already been reset."
            logger.info("cycle_already_reset", extra={"month_key": str(config.last_reset)})
            return _Pass(
                result=CycleRunResult(CycleOutcome.ALREADY_RESET, message=message),
                notice=("Info", message) if manual else None,
            )

        silent = not manual and config.auto_reset_enabled
        if not silent and not confirmed:
            if manual:
                title = "Confirm Monthly Reset"
                prompt = (
                    "This will mark ALL 'Paid' customers as 'Unpaid' and log it in "
                    f"history.\n\nConfigured Cycle Day: {config.due_day}\n\nContinue?"
                )
            else:
                title = "Monthly Billing Cycle"
                prompt = (
                    f"It is past the common recharge day ({config.due_day}). "
                    "Do you want to reset all 'Paid' customers to 'Unpaid'?"
                )
            logger.info("cycle_confirmation_requested", extra={"due_day": config.due_day})
            return _Pass(prompt=(title, prompt))

        reset = MonthlyResetService(
            session, self._clock, settings=settings,
        ).run_monthly_reset(silent=silent, config=config)

        if reset.count == 0:
            message = "No paid customers to reset."
            title = "Info"
        elif silent:
            message = (
                "Monthly billing cycle reset complete. "
                f"{reset.count} customers marked as Unpaid."
            )
            title = "Auto Reset"
        else:
            message = f"Reset complete. {reset.count} customers marked as Unpaid."
            title = "Success"
        if reset.audit_failures:
            message += f" {reset.audit_failures} history entries could not be written."
        return _Pass(
            result=CycleRunResult(CycleOutcome.COMPLETED, reset=reset, message=message),
            notice=(title, message),
        )

    def _failed(self, exc: Exception) -> CycleRunResult:
        if isinstance(exc, SchemaMissingError):
            title = "Database Update Required"
            message = f"{exc.operator_hint} Nothing was changed."
        elif isinstance(exc, ConcurrencyError):
            title = "Info"
            message = exc.user_message
        elif isinstance(exc, BillingKernelError):
            title = "Error"
            message = exc.user_message
        else:
            title = "Error"
            message = f"{exc} Nothing was changed."

        logger.error("cycle_run_failed", exc_info=exc)
        self._surface.notify(title, message)
        return CycleRunResult(
            CycleOutcome.FAILED,
            message=message,
            error_code=getattr(exc, "code", None),
        )
