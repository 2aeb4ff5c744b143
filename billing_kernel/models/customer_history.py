"""
Module: billing_kernel.models.customer_history
Responsibility: ORM persistence for the append-only customer history.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Entries are append-only; UPDATE and DELETE are rejected by the
      listeners in db/immutability.py.
    - ``customer_id`` is a plain indexed column, not a foreign key: a restore
      that replaces the customers table must not take the history with it.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditSchemaMissingError (raised by AuditLog) when the table has not
      been provisioned.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import ID_LENGTH, RecordBase

if TYPE_CHECKING:
    from billing_kernel.domain.dtos import AuditEntryInfo


class AuditEntry(RecordBase):
    """One lifecycle event for one customer."""

    __tablename__ = "customer_history"

    __table_args__ = (
        Index("idx_history_customer", "customer_id", "timestamp"),
        Index("idx_history_action", "action", "timestamp"),
    )

    customer_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEntry {self.action} on {self.customer_id}>"

    def to_dto(self, customer_name: str | None = None) -> AuditEntryInfo:
        from billing_kernel.domain.dtos import AuditEntryInfo
        from billing_kernel.domain.values import AuditAction

        return AuditEntryInfo(
            id=self.id,
            customer_id=self.customer_id,
            action=AuditAction.parse(self.action),
            details=self.details,
            timestamp=self.timestamp,
            customer_name=customer_name,
        )
