"""
residuals/domain/audit.py

Append-only audit trail entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


class AuditAction:
    FIELD_MAPPED = "field-mapped"
    FIELD_DEFAULTED = "field-defaulted"
    COERCION_FALLBACK = "coercion-fallback"
    UNIT_CONVERTED = "unit-converted"
    MAPPING_REJECTED = "mapping-rejected"
    ROW_PARSE_FAILED = "row-parse-failed"
    VALIDATED = "validated"
    REJECTED = "rejected"
    FLAGGED = "flagged"


@dataclass(frozen=True)
class AuditEntry:
    """
    One recorded transformation or validation decision.

    ``timestamp`` is left empty by producers and stamped by the audit
    recorder when the entry is written.
    """

    action: str
    processor_name: str
    source_line: int | None
    before_value: str | None = None
    after_value: str | None = None
    confidence: int | None = None
    confidence_delta: int = 0
    field_name: str | None = None
    merchant_id: str | None = None
    batch_id: str | None = None
    timestamp: datetime | None = None
