"""
residuals/schemas/batch_report.py

Report models handed to persistence and reporting collaborators.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from residuals.domain.issues import BatchResult, RejectedRecord, RowError, ValidationIssue
from residuals.domain.records import CandidateRecord


class ValidationIssueResponse(BaseModel):
    """
    Serialized validation issue.
    """

    kind: str
    severity: str
    merchant_id: str | None = None
    message: str
    suggested_action: str = ""
    source_line: int | None = Field(default=None, ge=1)
    context: dict[str, Any] | None = None


class MerchantRevenueResponse(BaseModel):
    """
    Serialized candidate record; money fields are strings to keep exact cents.
    """

    merchant_id: str
    merchant_name: str
    revenue: str
    volume: str
    transaction_count: int = Field(..., ge=0)
    processor_name: str
    source_line: int = Field(..., ge=1)
    mapping_confidence: int = Field(..., ge=0, le=100)


class RejectedRecordResponse(BaseModel):
    record: MerchantRevenueResponse
    issues: list[ValidationIssueResponse] = Field(default_factory=list)


class RowErrorResponse(BaseModel):
    line_number: int = Field(..., ge=1)
    kind: str
    reason: str


class BatchReportResponse(BaseModel):
    """
    Full outcome of one ingested statement batch.
    """

    processor_name: str
    total_rows: int = Field(..., ge=0)
    valid_count: int = Field(..., ge=0)
    rejected_count: int = Field(..., ge=0)
    total_revenue: str
    total_volume: str
    total_transactions: int = Field(..., ge=0)
    average_revenue: str
    has_errors: bool
    issue_counts: dict[str, int] = Field(default_factory=dict)
    valid_records: list[MerchantRevenueResponse] = Field(default_factory=list)
    rejected_records: list[RejectedRecordResponse] = Field(default_factory=list)
    issues: list[ValidationIssueResponse] = Field(default_factory=list)
    row_errors: list[RowErrorResponse] = Field(default_factory=list)


def _money(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.01")))


def _issue_response(issue: ValidationIssue) -> ValidationIssueResponse:
    return ValidationIssueResponse(
        kind=issue.kind,
        severity=issue.severity,
        merchant_id=issue.merchant_id,
        message=issue.message,
        suggested_action=issue.suggested_action,
        source_line=issue.source_line,
        context=dict(issue.context) if issue.context else None,
    )


def _record_response(record: CandidateRecord) -> MerchantRevenueResponse:
    return MerchantRevenueResponse(
        merchant_id=record.merchant_id,
        merchant_name=record.merchant_name,
        revenue=str(record.revenue),
        volume=str(record.volume),
        transaction_count=record.transaction_count,
        processor_name=record.processor_name,
        source_line=record.source_line,
        mapping_confidence=record.mapping_confidence,
    )


def _rejected_response(rejected: RejectedRecord) -> RejectedRecordResponse:
    return RejectedRecordResponse(
        record=_record_response(rejected.record),
        issues=[_issue_response(issue) for issue in rejected.issues],
    )


def _row_error_response(row_error: RowError) -> RowErrorResponse:
    return RowErrorResponse(
        line_number=row_error.line_number,
        kind=row_error.kind,
        reason=row_error.reason,
    )


def build_batch_report(result: BatchResult) -> BatchReportResponse:
    """
    Convert a BatchResult into its serializable report.
    """

    return BatchReportResponse(
        processor_name=result.processor_name,
        total_rows=result.total_rows,
        valid_count=len(result.valid_records),
        rejected_count=len(result.rejected_records),
        total_revenue=_money(result.total_revenue),
        total_volume=_money(result.total_volume),
        total_transactions=result.total_transactions,
        average_revenue=_money(result.average_revenue),
        has_errors=result.has_errors,
        issue_counts=result.issue_counts(),
        valid_records=[_record_response(record) for record in result.valid_records],
        rejected_records=[_rejected_response(rejected) for rejected in result.rejected_records],
        issues=[_issue_response(issue) for issue in result.issues],
        row_errors=[_row_error_response(row_error) for row_error in result.row_errors],
    )
