"""
Module: billing_kernel.models.setting
Responsibility: ORM persistence for the string-valued key/value settings store.
Architecture position: Kernel > Models.  May import from db/base.py only.

Keys in use: ``dueDay``, ``lastResetMonthKey``, ``autoResetEnabled``.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import Base


class Setting(Base):
    """One settings key and its string value."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Setting {self.key}={self.value!r}>"
