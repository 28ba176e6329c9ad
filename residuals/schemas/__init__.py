"""
residuals/schemas package marker.
"""

from residuals.schemas.batch_report import (
    BatchReportResponse,
    MerchantRevenueResponse,
    RejectedRecordResponse,
    RowErrorResponse,
    ValidationIssueResponse,
    build_batch_report,
)

__all__ = [
    "BatchReportResponse",
    "MerchantRevenueResponse",
    "RejectedRecordResponse",
    "RowErrorResponse",
    "ValidationIssueResponse",
    "build_batch_report",
]
