"""
Module: billing_kernel.models.saved_snapshot
Responsibility: ORM persistence for named snapshots kept in the database
    (the "cloud backup" list).
Architecture position: Kernel > Models.  May import from db/base.py only.

``data`` holds the versioned snapshot JSON exactly as SnapshotCodec wrote it.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import RecordBase


class SavedSnapshot(RecordBase):
    """A named, serialized snapshot."""

    __tablename__ = "backups"

    __table_args__ = (Index("idx_backups_created", "created_at"),)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<SavedSnapshot {self.name!r} {self.created_at}>"

    def to_dto(self):
        from billing_kernel.domain.dtos import SavedSnapshotInfo

        return SavedSnapshotInfo(id=self.id, name=self.name, created_at=self.created_at)
