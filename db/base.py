"""
db/base.py

Declarative base, JSON column type and timestamp mixin for the residual store.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """
    Base for every residual store table; ``db.models`` registers them on its metadata.
    """

    type_annotation_map: dict[type, Any] = {}


class TimestampMixin:
    """
    Row bookkeeping columns for tables that are rewritten in place.

    Append-only tables such as audit_entries carry their own recorded_at instead.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
