"""
Repository backing the audit recorder with the audit_entries table.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.models.audit_entry import AuditEntryRecord
from residuals.domain.audit import AuditEntry


class AuditEntryRepository:
    """
    Append-only audit sink; rows are never updated or deleted here.

    SQLAlchemy errors propagate so the recorder can fail the batch.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(self, entry: AuditEntry) -> None:
        self._session.add(
            AuditEntryRecord(
                batch_id=entry.batch_id,
                action=entry.action,
                processor_name=entry.processor_name,
                source_line=entry.source_line,
                field_name=entry.field_name,
                merchant_id=entry.merchant_id,
                before_value=entry.before_value,
                after_value=entry.after_value,
                confidence=entry.confidence,
                confidence_delta=entry.confidence_delta,
                recorded_at=entry.timestamp or datetime.now(timezone.utc),
            )
        )
        self._session.flush()

    def list_for_batch(self, batch_id: str) -> list[AuditEntry]:
        stmt: Select[tuple[AuditEntryRecord]] = (
            select(AuditEntryRecord)
            .where(AuditEntryRecord.batch_id == batch_id)
            .order_by(AuditEntryRecord.recorded_at.asc())
        )
        return [self._to_entry(row) for row in self._session.scalars(stmt).all()]

    @staticmethod
    def _to_entry(row: AuditEntryRecord) -> AuditEntry:
        return AuditEntry(
            action=row.action,
            processor_name=row.processor_name,
            source_line=row.source_line,
            before_value=row.before_value,
            after_value=row.after_value,
            confidence=row.confidence,
            confidence_delta=row.confidence_delta,
            field_name=row.field_name,
            merchant_id=row.merchant_id,
            batch_id=row.batch_id,
            timestamp=row.recorded_at,
        )
