"""
SettingsService -- billing cycle settings in the key/value settings store.

Keys (string values):
    dueDay              "1".."28"
    lastResetMonthKey   ISO date, first of month on write; "" = never reset
    autoResetEnabled    "true" / "false"

The reset marker is advanced with a compare-and-swap UPDATE
(``WHERE value = <value read>``) so two runs that both read the same marker
cannot both claim the same billing cycle.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import FlushError

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.domain.dtos import MAX_DUE_DAY, MIN_DUE_DAY, CycleConfig
from billing_kernel.domain.values import MonthKey
from billing_kernel.exceptions import CycleAlreadyClaimedError, InvalidDueDayError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.setting import Setting
from billing_kernel.services.base import BaseService

logger = get_logger("services.settings")

DUE_DAY_KEY = "dueDay"
LAST_RESET_KEY = "lastResetMonthKey"
AUTO_RESET_KEY = "autoResetEnabled"


def parse_due_day(value: object) -> int:
    """
    Parse a due day typed by a user or read from the store.

    Raises:
        InvalidDueDayError: Not an integer, or outside 1..28.
    """
    if isinstance(value, bool):
        raise InvalidDueDayError(value)
    if isinstance(value, int):
        day = value
    else:
        text = str(value).strip() if value is not None else ""
        if not text.lstrip("-").isdigit():
            raise InvalidDueDayError(value)
        day = int(text)
    if not MIN_DUE_DAY <= day <= MAX_DUE_DAY:
        raise InvalidDueDayError(value)
    return day


class SettingsService(BaseService[Setting]):
    """Typed access to the cycle settings.  Flush-only."""

    def __init__(
        self,
        session: Session,
        default_due_day: int = MIN_DUE_DAY,
        default_auto_reset: bool = False,
    ):
        super().__init__(session)
        self._default_due_day = default_due_day
        self._default_auto_reset = default_auto_reset

    # -------------------------------------------------------------------------
    # Raw key/value access
    # -------------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        """Stored value, or None when the key has never been written."""
        with translate_store_errors("settings_get", table="settings"):
            return self.session.execute(
                select(Setting.value).where(Setting.key == key)
            ).scalar_one_or_none()

    def put(self, key: str, value: str) -> None:
        with translate_store_errors("settings_put", table="settings"):
            row = self.session.get(Setting, key)
            if row is None:
                self.session.add(Setting(key=key, value=value))
            else:
                row.value = value
            self.session.flush()

    # -------------------------------------------------------------------------
    # Cycle configuration
    # -------------------------------------------------------------------------

    def load_cycle_config(self) -> CycleConfig:
        """
        Read the current cycle configuration.

        A stored due day that no longer parses falls back to the default
        (logged); an unreadable reset marker is treated as "never reset".
        Keys never written take the configured defaults.
        """
        raw_due = self.get(DUE_DAY_KEY)
        due_day = self._default_due_day
        if raw_due is not None:
            try:
                due_day = parse_due_day(raw_due)
            except InvalidDueDayError:
                logger.warning(
                    "stored_due_day_invalid",
                    extra={"value": raw_due, "fallback": due_day},
                )

        raw_marker = self.get(LAST_RESET_KEY)
        try:
            last_reset = MonthKey.parse(raw_marker)
        except ValueError:
            logger.warning("stored_reset_marker_invalid", extra={"value": raw_marker})
            last_reset = None

        raw_auto = self.get(AUTO_RESET_KEY)
        if raw_auto is None:
            auto = self._default_auto_reset
        else:
            auto = raw_auto.strip().lower() == "true"

        return CycleConfig(
            due_day=due_day,
            last_reset=last_reset,
            auto_reset_enabled=auto,
            last_reset_raw=raw_marker,
        )

    def save_due_day(self, value: object) -> int:
        """
        Validate and persist the due day.

        Raises:
            InvalidDueDayError: Not an integer in 1..28; nothing is written.
        """
        day = parse_due_day(value)
        self.put(DUE_DAY_KEY, str(day))
        logger.info("due_day_saved", extra={"due_day": day})
        return day

    def set_auto_reset(self, enabled: bool) -> None:
        self.put(AUTO_RESET_KEY, "true" if enabled else "false")
        logger.info("auto_reset_toggled", extra={"enabled": enabled})

    def expected_marker(self, config: CycleConfig, month_key: MonthKey) -> str | None:
        """
        Raw marker value to compare-and-swap against for ``config``.

        A config read by ``load_cycle_config`` carries the raw value.  One
        built by a caller only carries the month key, so the stored marker is
        read back and must still name that month.

        Raises:
            CycleAlreadyClaimedError: The stored marker names another month.
        """
        if config.last_reset_raw is not None:
            return config.last_reset_raw
        stored = self.get(LAST_RESET_KEY)
        try:
            stored_key = MonthKey.parse(stored)
        except ValueError:
            stored_key = None
        if stored_key != config.last_reset:
            logger.warning(
                "cycle_config_stale",
                extra={
                    "month_key": str(month_key),
                    "config_marker": str(config.last_reset),
                    "stored_marker": stored,
                },
            )
            raise CycleAlreadyClaimedError(str(month_key), stored)
        return stored

    def claim_cycle(self, expected: str | None, month_key: MonthKey) -> None:
        """
        Advance the reset marker to ``month_key`` iff it still holds
        ``expected`` (the raw value read with the config; None = no row).

        Raises:
            CycleAlreadyClaimedError: Another run changed the marker first.
        """
        new_value = month_key.to_iso()
        with translate_store_errors("claim_cycle", table="settings"):
            if expected is None:
                try:
                    with self.session.begin_nested():
                        self.session.add(Setting(key=LAST_RESET_KEY, value=new_value))
                        self.session.flush()
                except (IntegrityError, FlushError):
                    raise CycleAlreadyClaimedError(str(month_key), expected) from None
            else:
                result = self.session.execute(
                    update(Setting)
                    .where(Setting.key == LAST_RESET_KEY, Setting.value == expected)
                    .values(value=new_value)
                )
                if result.rowcount != 1:
                    logger.warning(
                        "cycle_claim_lost",
                        extra={"month_key": str(month_key), "expected": expected},
                    )
                    raise CycleAlreadyClaimedError(str(month_key), expected)
        logger.info(
            "cycle_claimed",
            extra={"month_key": str(month_key), "previous": expected},
        )
