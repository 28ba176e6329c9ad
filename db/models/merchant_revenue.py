"""
db/models/merchant_revenue.py

Validated monthly residual per merchant and processor.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Index, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class MerchantRevenueRecord(Base, TimestampMixin):
    __tablename__ = "merchant_revenue_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    processor_name: Mapped[str] = mapped_column(String(120), nullable=False)
    month: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="Reporting month as YYYY-MM",
    )
    merchant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    merchant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    revenue: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    volume: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mapping_confidence: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    source_line: Mapped[int | None] = mapped_column(Integer, nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "processor_name",
            "month",
            "merchant_id",
            name="uq_merchant_revenue_records_processor_month_merchant",
        ),
        Index("ix_merchant_revenue_records_processor_month", "processor_name", "month"),
        Index("ix_merchant_revenue_records_merchant_id", "merchant_id"),
    )
