"""
Module: billing_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the opaque string primary key convention and the type annotation map for
    consistent column types.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Opaque identifiers: record ids are strings.  Ids generated here are
      uuid4 text, but restored snapshots and CSV imports may carry any id
      the source system used, so nothing downstream parses them.
    - Timestamps are always timezone-aware columns.

Failure modes:
    - IntegrityError if a model attempts to INSERT a duplicate id.
"""

from datetime import datetime
from typing import ClassVar
from uuid import uuid4

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ID_LENGTH = 64


def new_id() -> str:
    """Generate a fresh opaque identifier."""
    return str(uuid4())


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model in the system inherits from Base (usually through
        RecordBase).  Base carries the type_annotation_map so that plain
        annotations resolve to the same column types everywhere.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        str: Text(),
    }


class RecordBase(Base):
    """
    Abstract base for records keyed by an opaque string id.

    Guarantees:
        - ``id`` defaults to a new uuid4 string when not supplied.
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        primary_key=True,
        default=new_id,
    )
