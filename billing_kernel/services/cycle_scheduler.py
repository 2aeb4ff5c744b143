"""
CycleScheduler -- in-process hourly poll of the billing cycle gate.

Contract:
    - ``tick()`` runs one scheduled ``evaluate_and_act``.
    - ``start()`` / ``stop()`` for background thread operation; ``stop``
      waits for an in-flight tick to finish (no run is cancelled midway).

Non-goals:
    - NOT a distributed scheduler; cross-process safety comes from the
      reset marker's compare-and-swap.
"""

from __future__ import annotations

import threading

from billing_kernel.logging_config import get_logger
from billing_kernel.services.cycle_coordinator import (
    BillingCycleCoordinator,
    CycleRunResult,
    CycleTrigger,
)

logger = get_logger("services.cycle_scheduler")

DEFAULT_TICK_INTERVAL = 3600


class CycleScheduler:

    def __init__(
        self,
        coordinator: BillingCycleCoordinator,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL,
    ):
        self._coordinator = coordinator
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> CycleRunResult:
        """Run one scheduled evaluation (public for testing)."""
        result = self._coordinator.evaluate_and_act(CycleTrigger.SCHEDULED)
        logger.debug("scheduler_tick", extra={"outcome": result.outcome.value})
        return result

    def start(self) -> None:
        """Start polling in a daemon thread.  The first tick runs immediately."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="billing-cycle-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the loop to exit."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def wait(self) -> None:
        """Block until ``stop()`` is called (used by the CLI daemon)."""
        self._stop_event.wait()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)
