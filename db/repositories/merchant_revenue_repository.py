"""
Persistence for validated merchant revenue, one row per merchant per month.
"""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.merchant_revenue import MerchantRevenueRecord
from db.repositories.errors import InvalidReportingMonthError, RevenuePersistenceError
from residuals.domain.issues import BatchResult
from residuals.domain.records import ValidatedRecord

_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _validate_month(month: str) -> str:
    normalized = (month or "").strip()
    if not _MONTH_PATTERN.match(normalized):
        raise InvalidReportingMonthError(f"Reporting month must be YYYY-MM, got {month!r}.")
    return normalized


class MerchantRevenueRepository:
    """
    Stores a batch's valid records and reads them back as prior-month input.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def save_valid_records(
        self,
        result: BatchResult,
        *,
        month: str,
        batch_id: str | None = None,
    ) -> int:
        """
        Replace the processor's stored month with ``result.valid_records``.

        Re-ingesting the same statement therefore leaves one row per merchant.
        """

        normalized_month = _validate_month(month)
        payloads: list[dict[str, Any]] = [
            {
                "processor_name": record.processor_name,
                "month": normalized_month,
                "merchant_id": record.merchant_id,
                "merchant_name": record.merchant_name,
                "revenue": record.revenue,
                "volume": record.volume,
                "transaction_count": record.transaction_count,
                "mapping_confidence": record.mapping_confidence,
                "source_line": record.source_line,
                "batch_id": batch_id,
            }
            for record in result.valid_records
        ]

        try:
            self._session.execute(
                delete(MerchantRevenueRecord).where(
                    MerchantRevenueRecord.processor_name == result.processor_name,
                    MerchantRevenueRecord.month == normalized_month,
                )
            )
            self._session.add_all(MerchantRevenueRecord(**payload) for payload in payloads)
            self._session.flush()
        except SQLAlchemyError as exc:
            raise RevenuePersistenceError(
                f"Failed to store {len(payloads)} records for {result.processor_name} {normalized_month}."
            ) from exc
        return len(payloads)

    def get_validated_records(
        self,
        *,
        processor_name: str,
        month: str,
    ) -> list[ValidatedRecord]:
        stmt = (
            select(MerchantRevenueRecord)
            .where(
                MerchantRevenueRecord.processor_name == processor_name,
                MerchantRevenueRecord.month == _validate_month(month),
            )
            .order_by(MerchantRevenueRecord.merchant_id.asc())
        )
        return [
            ValidatedRecord(
                merchant_id=row.merchant_id,
                merchant_name=row.merchant_name,
                revenue=row.revenue,
                volume=row.volume,
                transaction_count=row.transaction_count,
                processor_name=row.processor_name,
                mapping_confidence=row.mapping_confidence,
            )
            for row in self._session.scalars(stmt).all()
        ]
