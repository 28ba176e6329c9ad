"""
db/models/processor_schema_config.py

Stored processor schema definitions loaded into the registry at startup.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Boolean, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class ProcessorSchemaConfig(Base, TimestampMixin):
    __tablename__ = "processor_schema_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    processor_name: Mapped[str] = mapped_column(String(120), nullable=False)
    definition_json: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment="Processor schema fields as written by schema_to_mapping",
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("processor_name", name="uq_processor_schema_configs_processor_name"),
        Index("ix_processor_schema_configs_is_active", "is_active"),
    )
