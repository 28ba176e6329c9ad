"""
residuals/validators/revenue_validator.py

Batch validation of candidate merchant-revenue records.

Rules run in a fixed order and never short-circuit, so one record can carry
several issues. Errors exclude a record from the valid set; warnings and
info are kept on the result for review.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Mapping, Sequence

from residuals.config import ValidationSettings, get_validation_settings
from residuals.domain.issues import (
    BatchResult,
    IssueKind,
    IssueSeverity,
    RejectedRecord,
    ValidationIssue,
)
from residuals.domain.processor_schema import ProcessorSchema
from residuals.domain.records import CandidateRecord, ValidatedRecord

logger = logging.getLogger(__name__)

OUT_OF_RANGE_ACTION = "Verify field mapping - may be using volume instead of residual."


def _money(value: Decimal) -> str:
    return f"${value:,.2f}"


class RevenueValidator:
    """
    Applies range, consistency, duplicate, outlier and variance rules to a batch.
    """

    def __init__(self, settings: ValidationSettings | None = None) -> None:
        self._settings = settings or get_validation_settings()
        self._rules = (
            self._check_range,
            self._check_consistency,
            self._check_revenue_per_transaction,
            self._check_duplicates,
            self._check_outliers,
            self._check_month_over_month,
            self._check_merchant_id_format,
        )

    def validate(
        self,
        schema: ProcessorSchema,
        records: Sequence[CandidateRecord],
        prior_month_records: Sequence[ValidatedRecord] | None = None,
        *,
        mapping_issues: Mapping[int, Sequence[ValidationIssue]] | None = None,
    ) -> BatchResult:
        """
        Validate one batch and build its BatchResult.

        ``mapping_issues`` are issues the field mapper raised, keyed by source line;
        they are attached to their records ahead of the rule findings.
        """

        if schema is None:
            raise ValueError("schema is required for validation.")

        records = list(records)
        per_record: list[list[ValidationIssue]] = [[] for _ in records]
        all_issues: list[ValidationIssue] = []

        if mapping_issues:
            for index, record in enumerate(records):
                carried = list(mapping_issues.get(record.source_line, ()))
                per_record[index].extend(carried)
                all_issues.extend(carried)

        for rule in self._rules:
            for index, issue in rule(schema, records, prior_month_records):
                per_record[index].append(issue)
                all_issues.append(issue)

        valid_records: list[CandidateRecord] = []
        rejected_records: list[RejectedRecord] = []
        for record, issues in zip(records, per_record):
            if any(issue.is_error for issue in issues):
                rejected_records.append(RejectedRecord(record=record, issues=tuple(issues)))
            else:
                valid_records.append(record)

        total_revenue = sum((record.revenue for record in valid_records), Decimal("0"))
        total_volume = sum((record.volume for record in valid_records), Decimal("0"))
        total_transactions = sum(record.transaction_count for record in valid_records)

        logger.debug(
            "Validated batch processor=%s records=%s valid=%s rejected=%s issues=%s",
            schema.processor_name,
            len(records),
            len(valid_records),
            len(rejected_records),
            len(all_issues),
        )
        return BatchResult(
            processor_name=schema.processor_name,
            total_rows=len(records),
            valid_records=valid_records,
            rejected_records=rejected_records,
            total_revenue=total_revenue,
            total_volume=total_volume,
            total_transactions=total_transactions,
            issues=all_issues,
        )

    def _check_range(
        self,
        schema: ProcessorSchema,
        records: Sequence[CandidateRecord],
        prior_month_records: Sequence[ValidatedRecord] | None,
    ) -> list[tuple[int, ValidationIssue]]:
        found: list[tuple[int, ValidationIssue]] = []
        revenue_range = schema.revenue_range
        for index, record in enumerate(records):
            if revenue_range.contains(record.revenue):
                continue
            found.append(
                (
                    index,
                    ValidationIssue(
                        kind=IssueKind.OUT_OF_RANGE,
                        severity=IssueSeverity.ERROR,
                        merchant_id=record.merchant_id,
                        message=(
                            f"Revenue {_money(record.revenue)} is outside the expected range "
                            f"{revenue_range.describe()} for {schema.processor_name}."
                        ),
                        suggested_action=OUT_OF_RANGE_ACTION,
                        source_line=record.source_line,
                        context={
                            "revenue": str(record.revenue),
                            "minimum": str(revenue_range.minimum),
                            "maximum": str(revenue_range.maximum),
                        },
                    ),
                )
            )
        return found

    def _check_consistency(
        self,
        schema: ProcessorSchema,
        records: Sequence[CandidateRecord],
        prior_month_records: Sequence[ValidatedRecord] | None,
    ) -> list[tuple[int, ValidationIssue]]:
        found: list[tuple[int, ValidationIssue]] = []
        for index, record in enumerate(records):
            if record.revenue > 0 and record.transaction_count == 0:
                found.append(
                    (
                        index,
                        ValidationIssue(
                            kind=IssueKind.REVENUE_WITHOUT_TRANSACTIONS,
                            severity=IssueSeverity.WARNING,
                            merchant_id=record.merchant_id,
                            message=f"Revenue {_money(record.revenue)} reported with zero transactions.",
                            suggested_action="Confirm the transaction count column is mapped correctly.",
                            source_line=record.source_line,
                        ),
                    )
                )
        return found

    def _check_revenue_per_transaction(
        self,
        schema: ProcessorSchema,
        records: Sequence[CandidateRecord],
        prior_month_records: Sequence[ValidatedRecord] | None,
    ) -> list[tuple[int, ValidationIssue]]:
        found: list[tuple[int, ValidationIssue]] = []
        limit = self._settings.max_revenue_per_transaction
        for index, record in enumerate(records):
            if record.transaction_count <= 0:
                continue
            per_transaction = record.revenue / record.transaction_count
            if per_transaction > limit:
                found.append(
                    (
                        index,
                        ValidationIssue(
                            kind=IssueKind.HIGH_REVENUE_PER_TRANSACTION,
                            severity=IssueSeverity.WARNING,
                            merchant_id=record.merchant_id,
                            message=(
                                f"Revenue per transaction {_money(per_transaction)} exceeds "
                                f"{_money(limit)}."
                            ),
                            suggested_action="Check whether the revenue column holds processing volume.",
                            source_line=record.source_line,
                            context={"revenue_per_transaction": str(per_transaction)},
                        ),
                    )
                )
        return found

    def _check_duplicates(
        self,
        schema: ProcessorSchema,
        records: Sequence[CandidateRecord],
        prior_month_records: Sequence[ValidatedRecord] | None,
    ) -> list[tuple[int, ValidationIssue]]:
        found: list[tuple[int, ValidationIssue]] = []
        first_index: dict[str, int] = {}
        for index, record in enumerate(records):
            if record.merchant_id not in first_index:
                first_index[record.merchant_id] = index
                continue
            first_line = records[first_index[record.merchant_id]].source_line
            found.append(
                (
                    index,
                    ValidationIssue(
                        kind=IssueKind.DUPLICATE_MERCHANT_ID,
                        severity=IssueSeverity.ERROR,
                        merchant_id=record.merchant_id,
                        message=(
                            f"Merchant ID {record.merchant_id} already appeared on line {first_line} "
                            "of this batch."
                        ),
                        suggested_action="Remove the duplicate row or confirm the merchant IDs in the source file.",
                        source_line=record.source_line,
                        context={"first_line": first_line},
                    ),
                )
            )
        return found

    def _check_outliers(
        self,
        schema: ProcessorSchema,
        records: Sequence[CandidateRecord],
        prior_month_records: Sequence[ValidatedRecord] | None,
    ) -> list[tuple[int, ValidationIssue]]:
        found: list[tuple[int, ValidationIssue]] = []
        # Zero and negative rows are common on statements and would drag the mean down.
        positive = [record.revenue for record in records if record.revenue > 0]
        if not positive:
            return found
        mean = sum(positive, Decimal("0")) / len(positive)
        ceiling = mean * self._settings.outlier_multiplier
        for index, record in enumerate(records):
            if record.revenue > ceiling:
                found.append(
                    (
                        index,
                        ValidationIssue(
                            kind=IssueKind.STATISTICAL_OUTLIER,
                            severity=IssueSeverity.WARNING,
                            merchant_id=record.merchant_id,
                            message=(
                                f"Revenue {_money(record.revenue)} is more than "
                                f"{self._settings.outlier_multiplier}x the batch mean of {_money(mean)}."
                            ),
                            suggested_action="Review this merchant before reporting.",
                            source_line=record.source_line,
                            context={"revenue": str(record.revenue), "batch_mean": str(mean)},
                        ),
                    )
                )
        return found

    def _check_month_over_month(
        self,
        schema: ProcessorSchema,
        records: Sequence[CandidateRecord],
        prior_month_records: Sequence[ValidatedRecord] | None,
    ) -> list[tuple[int, ValidationIssue]]:
        found: list[tuple[int, ValidationIssue]] = []
        if not prior_month_records:
            return found

        processor_key = schema.processor_name.lower()
        prior_by_merchant: dict[str, Decimal] = {}
        for prior in prior_month_records:
            if prior.processor_name.strip().lower() != processor_key:
                continue
            prior_by_merchant.setdefault(prior.merchant_id, prior.revenue)

        limit = self._settings.max_month_over_month_change
        for index, record in enumerate(records):
            prior_revenue = prior_by_merchant.get(record.merchant_id)
            if prior_revenue is None or prior_revenue <= 0:
                continue
            change = abs(record.revenue - prior_revenue) / prior_revenue
            if change > limit:
                found.append(
                    (
                        index,
                        ValidationIssue(
                            kind=IssueKind.MONTH_OVER_MONTH_VARIANCE,
                            severity=IssueSeverity.WARNING,
                            merchant_id=record.merchant_id,
                            message=(
                                f"Revenue moved from {_money(prior_revenue)} to {_money(record.revenue)} "
                                f"({change:.0%} change) since last month."
                            ),
                            suggested_action="Confirm the change with the processor statement before reporting.",
                            source_line=record.source_line,
                            context={
                                "current": str(record.revenue),
                                "prior": str(prior_revenue),
                                "change": str(change),
                            },
                        ),
                    )
                )
        return found

    def _check_merchant_id_format(
        self,
        schema: ProcessorSchema,
        records: Sequence[CandidateRecord],
        prior_month_records: Sequence[ValidatedRecord] | None,
    ) -> list[tuple[int, ValidationIssue]]:
        found: list[tuple[int, ValidationIssue]] = []
        minimum = self._settings.min_merchant_id_length
        for index, record in enumerate(records):
            if len(record.merchant_id) < minimum:
                found.append(
                    (
                        index,
                        ValidationIssue(
                            kind=IssueKind.SHORT_MERCHANT_ID,
                            severity=IssueSeverity.INFO,
                            merchant_id=record.merchant_id,
                            message=(
                                f"Merchant ID {record.merchant_id} is shorter than {minimum} characters."
                            ),
                            suggested_action="Check the merchant ID column for truncated values.",
                            source_line=record.source_line,
                        ),
                    )
                )
        return found
