"""
AuditLog -- append-only customer history.

Responsibility:
    Writes one history entry per customer lifecycle event and reads the
    history back, per customer or per action.

Invariants enforced:
    - Writes are fire-and-forget: a failed write is logged
      (``audit_write_failed``) and never propagates, never rolls back the
      state change it describes.  Each write runs in its own SAVEPOINT so a
      failure cannot poison the caller's transaction.
    - Reads never mask a missing table as "no history": they raise
      ``AuditSchemaMissingError``.
    - Entries are never updated or deleted (see db/immutability.py).
"""

from __future__ import annotations

import re
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.db.schema import AUDIT_TABLE, SchemaProbe
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import AuditEntryInfo
from billing_kernel.domain.values import AuditAction
from billing_kernel.exceptions import BillingKernelError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.customer import Customer
from billing_kernel.models.customer_history import AuditEntry
from billing_kernel.services.base import BaseService

logger = get_logger("services.audit_log")

RESET_LOG_LIMIT = 300


def _stored_tags(action: AuditAction | str) -> tuple[str, ...]:
    """Tag as written now plus the spaced form older rows carry."""
    if not isinstance(action, AuditAction):
        action = AuditAction.parse(action)
        if not isinstance(action, AuditAction):
            return (action,)
    spaced = re.sub(r"(?<!^)([A-Z])", r" \1", action.value)
    if spaced == action.value:
        return (action.value,)
    return (action.value, spaced)


class AuditLog(BaseService[AuditEntry]):
    """Append-only writer and reader for ``customer_history``."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._probe = SchemaProbe(session)
        self._last_written: AuditEntryInfo | None = None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def record(
        self,
        customer_id: str,
        action: AuditAction | str,
        details: str,
    ) -> AuditEntryInfo | None:
        """
        Append one entry.  Returns the entry, or None when the write failed.
        """
        failures = self._write([(customer_id, details)], action)
        if failures:
            return None
        return self._last_written

    def record_many(
        self,
        entries: Iterable[tuple[str, str]],
        action: AuditAction | str,
    ) -> int:
        """
        Append one entry per ``(customer_id, details)`` pair.

        Returns:
            Number of entries that could not be written.
        """
        return self._write(list(entries), action)

    def _write(self, entries: list[tuple[str, str]], action: AuditAction | str) -> int:
        self._last_written = None
        if not entries:
            return 0
        tag = AuditAction.tag_of(action)

        if not self._probe.has_table(AUDIT_TABLE):
            logger.warning(
                "audit_write_failed",
                extra={
                    "action": tag,
                    "entries": len(entries),
                    "reason": "AUDIT_SCHEMA_MISSING",
                },
            )
            return len(entries)

        failures = 0
        timestamp = self._clock.now()
        for customer_id, details in entries:
            entry = AuditEntry(
                customer_id=customer_id,
                action=tag,
                details=details,
                timestamp=timestamp,
            )
            try:
                with self.session.begin_nested():
                    self.session.add(entry)
                    self.session.flush()
            except (SQLAlchemyError, BillingKernelError) as exc:
                failures += 1
                logger.warning(
                    "audit_write_failed",
                    extra={
                        "customer_id": customer_id,
                        "action": tag,
                        "reason": str(exc),
                    },
                )
                continue
            self._last_written = entry.to_dto()

        logger.debug(
            "audit_entries_written",
            extra={
                "action": tag,
                "written": len(entries) - failures,
                "failed": failures,
            },
        )
        return failures

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def query(self, customer_id: str) -> list[AuditEntryInfo]:
        """
        History of one customer, newest first.  Entries sharing a timestamp
        (one batch) are ordered by id.

        Raises:
            AuditSchemaMissingError: ``customer_history`` is not provisioned.
        """
        self._probe.require(AUDIT_TABLE)
        with translate_store_errors("audit_query", table=AUDIT_TABLE):
            rows = self.session.execute(
                select(AuditEntry)
                .where(AuditEntry.customer_id == customer_id)
                .order_by(AuditEntry.timestamp.desc(), AuditEntry.id.desc())
            ).scalars().all()
        return [row.to_dto() for row in rows]

    def query_by_action(
        self,
        action: AuditAction | str,
        limit: int = RESET_LOG_LIMIT,
    ) -> list[AuditEntryInfo]:
        """
        Latest ``limit`` entries for one action, newest first, each carrying
        the customer's name when the customer still exists.

        Raises:
            AuditSchemaMissingError: ``customer_history`` is not provisioned.
        """
        self._probe.require(AUDIT_TABLE)
        with translate_store_errors("audit_query_by_action", table=AUDIT_TABLE):
            rows = self.session.execute(
                select(AuditEntry, Customer.name)
                .outerjoin(Customer, Customer.id == AuditEntry.customer_id)
                .where(AuditEntry.action.in_(_stored_tags(action)))
                .order_by(AuditEntry.timestamp.desc(), AuditEntry.id.desc())
                .limit(limit)
            ).all()
        return [entry.to_dto(customer_name=name) for entry, name in rows]
