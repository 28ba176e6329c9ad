"""
db/models/audit_entry.py

Append-only audit log of ingestion mapping and validation decisions.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class AuditEntryRecord(Base):
    __tablename__ = "audit_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    action: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="field-mapped, field-defaulted, coercion-fallback, unit-converted, "
        "mapping-rejected, row-parse-failed, validated, rejected, flagged",
    )
    processor_name: Mapped[str] = mapped_column(String(120), nullable=False)
    source_line: Mapped[int | None] = mapped_column(Integer, nullable=True)
    field_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    merchant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    before_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    after_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    confidence_delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_audit_entries_batch_id", "batch_id"),
        Index("ix_audit_entries_processor_name", "processor_name"),
        Index("ix_audit_entries_action", "action"),
        Index("ix_audit_entries_recorded_at", "recorded_at"),
    )
