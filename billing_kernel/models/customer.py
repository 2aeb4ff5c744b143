"""
Module: billing_kernel.models.customer
Responsibility: ORM persistence for subscription customers.
Architecture position: Kernel > Models.  May import from db/base.py only
    (domain types are imported lazily inside the DTO converters).

Invariants enforced:
    - ``deleted`` rows are soft-deleted: every engine query filters them out.
    - ``exclude_from_reset`` may be NULL on rows written before the column
      existed; NULL reads as "not excluded".
    - ``package`` is a comma-joined, order-preserving list of package names.

Failure modes:
    - IntegrityError on duplicate id.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import RecordBase

if TYPE_CHECKING:
    from billing_kernel.domain.dtos import CustomerRecord


class Customer(RecordBase):
    """A cable or internet subscriber."""

    __tablename__ = "customers"

    __table_args__ = (
        Index("idx_customers_status_deleted", "status", "deleted"),
        Index("idx_customers_type", "type"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    package: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="unpaid")
    # Column name kept as "type" to match the snapshot and CSV formats.
    service_type: Mapped[str] = mapped_column("type", String(16), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mobile: Mapped[str | None] = mapped_column(String(32), nullable=True)
    last_recharge: Mapped[date | None] = mapped_column(Date, nullable=True)
    box_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    mac_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    exclude_from_reset: Mapped[bool | None] = mapped_column(
        Boolean, nullable=True, default=False,
    )
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Customer {self.id} {self.name!r} {self.status}>"

    def to_dto(self) -> CustomerRecord:
        from billing_kernel.domain.dtos import CustomerRecord, split_packages
        from billing_kernel.domain.values import PaymentStatus, ServiceType

        return CustomerRecord(
            id=self.id,
            name=self.name,
            packages=split_packages(self.package),
            status=PaymentStatus(self.status),
            service_type=ServiceType(self.service_type),
            address=self.address,
            mobile=self.mobile or None,
            last_payment_date=self.last_recharge,
            box_number=self.box_number or None,
            mac_address=self.mac_address or None,
            excluded_from_reset=bool(self.exclude_from_reset),
            deleted=bool(self.deleted),
        )

    @classmethod
    def from_dto(cls, dto: CustomerRecord) -> Customer:
        from billing_kernel.domain.dtos import join_packages

        return cls(
            id=dto.id,
            name=dto.name,
            package=join_packages(dto.packages),
            status=dto.status.value,
            service_type=dto.service_type.value,
            address=dto.address,
            mobile=dto.mobile,
            last_recharge=dto.last_payment_date,
            box_number=dto.box_number,
            mac_address=dto.mac_address,
            exclude_from_reset=dto.excluded_from_reset,
            deleted=dto.deleted,
        )
