"""
residuals/mappers/field_mapper.py

Maps parsed statement rows onto candidate merchant-revenue records.

The mapper scores how much it trusts each mapping but never rejects on
low confidence; that decision belongs to the validator. It is pure: the
audit entries it produces are returned for the orchestrator to flush.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from residuals.domain.audit import AuditAction, AuditEntry
from residuals.domain.errors import MappingError, MappingErrorKind
from residuals.domain.issues import IssueKind, IssueSeverity, ValidationIssue
from residuals.domain.processor_schema import ProcessorSchema, RevenueUnit
from residuals.domain.records import CandidateRecord, RawRow
from residuals.parsing.numbers import (
    CoercionStatus,
    parse_decimal,
    parse_transaction_count,
)

logger = logging.getLogger(__name__)

CONFIDENCE_START = 100
CONFIDENCE_PENALTY = 20

_AUDIT_ACTION_BY_STATUS: dict[str, str] = {
    CoercionStatus.MAPPED: AuditAction.FIELD_MAPPED,
    CoercionStatus.DEFAULTED: AuditAction.FIELD_DEFAULTED,
    CoercionStatus.FALLBACK: AuditAction.COERCION_FALLBACK,
}


@dataclass(frozen=True)
class MappingResult:
    """
    A candidate record with the issues and audit entries its mapping produced.
    """

    record: CandidateRecord
    issues: tuple[ValidationIssue, ...]
    audit_entries: tuple[AuditEntry, ...]


class FieldMapper:
    """
    Extracts identifiers and numeric fields using a processor schema.
    """

    def map_row(
        self,
        schema: ProcessorSchema,
        raw_row: RawRow,
        *,
        batch_id: str | None = None,
    ) -> MappingResult:
        """
        Map one parsed row; raises MappingError when an identifier is missing.
        """

        line_number = raw_row.line_number
        merchant_id = self._required_identifier(raw_row, schema.merchant_id_field)
        merchant_name = self._required_identifier(raw_row, schema.merchant_name_field)

        revenue_cell = parse_decimal(
            raw_row.get(schema.revenue_field),
            decimal_separator=schema.decimal_separator,
        )
        volume_cell = parse_decimal(
            raw_row.get(schema.volume_field),
            decimal_separator=schema.decimal_separator,
        )
        count_cell = parse_transaction_count(
            raw_row.get(schema.transaction_count_field),
            decimal_separator=schema.decimal_separator,
        )

        revenue = self._convert_revenue(schema, revenue_cell.value, volume_cell.value)
        volume = volume_cell.value
        transaction_count = count_cell.value

        range_penalty = 0 if schema.revenue_range.contains(revenue) else CONFIDENCE_PENALTY
        count_penalty = (
            CONFIDENCE_PENALTY
            if count_cell.status == CoercionStatus.MAPPED
            and transaction_count == 0
            and revenue != 0
            else 0
        )
        cells = (
            (schema.revenue_field, revenue_cell),
            (schema.volume_field, volume_cell),
            (schema.transaction_count_field, count_cell),
        )
        fallback_fields = [name for name, cell in cells if cell.used_fallback]
        fallback_penalty = CONFIDENCE_PENALTY if fallback_fields else 0
        confidence = max(0, CONFIDENCE_START - range_penalty - count_penalty - fallback_penalty)

        record = CandidateRecord(
            merchant_id=merchant_id,
            merchant_name=merchant_name,
            revenue=revenue,
            volume=volume,
            transaction_count=transaction_count,
            processor_name=schema.processor_name,
            source_line=line_number,
            mapping_confidence=confidence,
        )

        issues: list[ValidationIssue] = []
        for field_name, cell in cells:
            if cell.used_fallback:
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.MISSING_FIELD,
                        severity=IssueSeverity.WARNING,
                        merchant_id=merchant_id,
                        message=(
                            f"Could not read '{cell.raw}' in column '{field_name}' as a number; "
                            "defaulted to 0."
                        ),
                        suggested_action="Check the source file for non-numeric values in this column.",
                        source_line=line_number,
                        context={"field_name": field_name, "raw_value": cell.raw},
                    )
                )
        if confidence < schema.confidence_threshold:
            issues.append(
                ValidationIssue(
                    kind=IssueKind.OUT_OF_RANGE if range_penalty else IssueKind.MISSING_FIELD,
                    severity=IssueSeverity.WARNING,
                    merchant_id=merchant_id,
                    message=(
                        f"Mapping confidence {confidence} is below the {schema.processor_name} "
                        f"threshold of {schema.confidence_threshold}."
                    ),
                    suggested_action="Review the column mapping for this processor before accepting the record.",
                    source_line=line_number,
                    context={"confidence": confidence, "threshold": schema.confidence_threshold},
                )
            )

        deltas = {
            schema.revenue_field: range_penalty,
            schema.transaction_count_field: count_penalty,
        }
        if fallback_fields:
            deltas[fallback_fields[0]] = deltas.get(fallback_fields[0], 0) + fallback_penalty

        audit_entries: list[AuditEntry] = [
            self._identifier_entry(schema, raw_row, schema.merchant_id_field, merchant_id, confidence, batch_id),
            self._identifier_entry(schema, raw_row, schema.merchant_name_field, merchant_id, confidence, batch_id),
        ]
        for field_name, cell in cells:
            audit_entries.append(
                AuditEntry(
                    action=_AUDIT_ACTION_BY_STATUS[cell.status],
                    processor_name=schema.processor_name,
                    source_line=line_number,
                    before_value=cell.raw,
                    after_value=str(cell.value),
                    confidence=confidence,
                    confidence_delta=-deltas.get(field_name, 0),
                    field_name=field_name,
                    merchant_id=merchant_id,
                    batch_id=batch_id,
                )
            )
        if schema.revenue_unit != RevenueUnit.CURRENCY:
            audit_entries.append(
                AuditEntry(
                    action=AuditAction.UNIT_CONVERTED,
                    processor_name=schema.processor_name,
                    source_line=line_number,
                    before_value=f"{revenue_cell.value} {schema.revenue_unit}",
                    after_value=str(revenue),
                    confidence=confidence,
                    field_name=schema.revenue_field,
                    merchant_id=merchant_id,
                    batch_id=batch_id,
                )
            )

        if fallback_fields:
            logger.debug(
                "Coercion fallback processor=%s line=%s fields=%s",
                schema.processor_name,
                line_number,
                fallback_fields,
            )
        return MappingResult(record=record, issues=tuple(issues), audit_entries=tuple(audit_entries))

    @staticmethod
    def _required_identifier(raw_row: RawRow, field_name: str) -> str:
        value = raw_row.get(field_name)
        cleaned = (value or "").strip().strip('"').strip()
        if not cleaned:
            raise MappingError(
                kind=MappingErrorKind.MISSING_IDENTIFIER,
                line_number=raw_row.line_number,
                field_name=field_name,
                message=f"Required identifier column '{field_name}' is missing or empty.",
            )
        return cleaned

    @staticmethod
    def _convert_revenue(schema: ProcessorSchema, revenue: Decimal, volume: Decimal) -> Decimal:
        if schema.revenue_unit == RevenueUnit.CENTS:
            return revenue / 100
        if schema.revenue_unit == RevenueUnit.BASIS_POINTS:
            return volume * revenue / 10000
        return revenue

    @staticmethod
    def _identifier_entry(
        schema: ProcessorSchema,
        raw_row: RawRow,
        field_name: str,
        merchant_id: str,
        confidence: int,
        batch_id: str | None,
    ) -> AuditEntry:
        before = raw_row.get(field_name)
        return AuditEntry(
            action=AuditAction.FIELD_MAPPED,
            processor_name=schema.processor_name,
            source_line=raw_row.line_number,
            before_value=before,
            after_value=(before or "").strip().strip('"').strip(),
            confidence=confidence,
            field_name=field_name,
            merchant_id=merchant_id,
            batch_id=batch_id,
        )
