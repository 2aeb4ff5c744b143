"""
Module: billing_kernel.models.catalog
Responsibility: ORM persistence for the package catalog and package bundles.
Architecture position: Kernel > Models.  May import from db/base.py only.

Prices and profits are stored as the display strings the catalog was entered
with (e.g. "₹300"); numeric parsing happens in the billing summary selector.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import RecordBase

if TYPE_CHECKING:
    from billing_kernel.domain.dtos import BundleRecord, PackageRecord


class Package(RecordBase):
    """A priced service package for one service type."""

    __tablename__ = "packages"

    __table_args__ = (Index("idx_packages_type", "type"),)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    service_type: Mapped[str] = mapped_column("type", String(16), nullable=False)
    features: Mapped[str] = mapped_column(Text, nullable=False, default="")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    my_profit: Mapped[str | None] = mapped_column(String(32), nullable=True)

    def to_dto(self) -> PackageRecord:
        from billing_kernel.domain.dtos import PackageRecord
        from billing_kernel.domain.values import ServiceType

        return PackageRecord(
            id=self.id,
            name=self.name,
            price=self.price,
            service_type=ServiceType(self.service_type),
            features=self.features,
            active=bool(self.active),
            my_profit=self.my_profit,
        )

    @classmethod
    def from_dto(cls, dto: PackageRecord) -> Package:
        return cls(
            id=dto.id,
            name=dto.name,
            price=dto.price,
            service_type=dto.service_type.value,
            features=dto.features,
            active=dto.active,
            my_profit=dto.my_profit,
        )


class Bundle(RecordBase):
    """A named group of package names sold together."""

    __tablename__ = "bundles"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    items: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def to_dto(self) -> BundleRecord:
        from billing_kernel.domain.dtos import BundleRecord, split_packages

        return BundleRecord(id=self.id, name=self.name, items=split_packages(self.items))

    @classmethod
    def from_dto(cls, dto: BundleRecord) -> Bundle:
        from billing_kernel.domain.dtos import join_packages

        return cls(id=dto.id, name=dto.name, items=join_packages(dto.items))
