"""
residuals/domain/issues.py

Validation issues, row errors, and the end-of-batch result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from residuals.domain.records import CandidateRecord


class IssueKind:
    MISSING_FIELD = "missing_field"
    OUT_OF_RANGE = "out_of_range"
    DUPLICATE_MERCHANT_ID = "duplicate_merchant_id"
    REVENUE_WITHOUT_TRANSACTIONS = "revenue_without_transactions"
    HIGH_REVENUE_PER_TRANSACTION = "high_revenue_per_transaction"
    STATISTICAL_OUTLIER = "statistical_outlier"
    MONTH_OVER_MONTH_VARIANCE = "month_over_month_variance"
    SHORT_MERCHANT_ID = "short_merchant_id"
    MALFORMED_ROW = "malformed_row"


class IssueSeverity:
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


SEVERITY_ORDER: tuple[str, ...] = (
    IssueSeverity.ERROR,
    IssueSeverity.WARNING,
    IssueSeverity.INFO,
)


@dataclass(frozen=True)
class ValidationIssue:
    """
    One finding against a record, or against the batch when ``source_line`` is None.
    """

    kind: str
    severity: str
    merchant_id: str | None
    message: str
    suggested_action: str = ""
    source_line: int | None = None
    context: dict[str, Any] | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == IssueSeverity.ERROR

    @property
    def is_batch_level(self) -> bool:
        return self.source_line is None


@dataclass(frozen=True)
class RowError:
    """
    A raw line that never became a candidate record.
    """

    line_number: int
    kind: str
    reason: str


@dataclass(frozen=True)
class RejectedRecord:
    """
    A candidate record excluded from the valid set, with everything found against it.
    """

    record: CandidateRecord
    issues: tuple[ValidationIssue, ...]


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of one statement batch.

    Totals cover ``valid_records`` only; ``issues`` holds every issue raised,
    including warnings on records that were accepted.
    """

    processor_name: str
    total_rows: int
    valid_records: list[CandidateRecord] = field(default_factory=list)
    rejected_records: list[RejectedRecord] = field(default_factory=list)
    total_revenue: Decimal = Decimal("0")
    total_volume: Decimal = Decimal("0")
    total_transactions: int = 0
    issues: list[ValidationIssue] = field(default_factory=list)
    row_errors: list[RowError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.is_error for issue in self.issues)

    @property
    def average_revenue(self) -> Decimal:
        if not self.valid_records:
            return Decimal("0")
        return self.total_revenue / len(self.valid_records)

    def issue_counts(self) -> dict[str, int]:
        counts = {severity: 0 for severity in SEVERITY_ORDER}
        for issue in self.issues:
            counts[issue.severity] = counts.get(issue.severity, 0) + 1
        return counts

    def issues_for_line(self, source_line: int) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.source_line == source_line]
