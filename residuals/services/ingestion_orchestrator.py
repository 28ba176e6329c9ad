"""
residuals/services/ingestion_orchestrator.py

Drives one statement batch through parsing, mapping, validation and audit.

Per-row parse and mapping failures are recorded on the batch and the row is
skipped. Only an unknown processor or an audit write failure aborts the
batch; a batch with no usable rows still returns a BatchResult.
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Iterable, Sequence

from residuals.audit.recorder import AuditRecorder, AuditSink
from residuals.config import IngestionSettings, get_ingestion_settings
from residuals.domain.audit import AuditAction, AuditEntry
from residuals.domain.errors import AuditWriteError, MappingError, RowParseError, UnknownProcessorError
from residuals.domain.issues import (
    BatchResult,
    IssueKind,
    IssueSeverity,
    RowError,
    ValidationIssue,
)
from residuals.domain.processor_schema import ProcessorSchema
from residuals.domain.records import ValidatedRecord
from residuals.mappers.field_mapper import FieldMapper, MappingResult
from residuals.parsing.row_parser import locate_header, parse_row, split_line
from residuals.registry.loader import get_schema_registry
from residuals.registry.schema_registry import ProcessorDetection, SchemaRegistry
from residuals.validators.revenue_validator import RevenueValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _RowOutcome:
    line_number: int
    mapping: MappingResult | None = None
    row_error: RowError | None = None
    issue: ValidationIssue | None = None
    audit_entry: AuditEntry | None = None


class IngestionOrchestrator:
    """
    Entry point for ingesting one processor's monthly statement.
    """

    def __init__(
        self,
        *,
        recorder: AuditRecorder,
        registry: SchemaRegistry | None = None,
        mapper: FieldMapper | None = None,
        validator: RevenueValidator | None = None,
        settings: IngestionSettings | None = None,
    ) -> None:
        self._registry = registry or get_schema_registry()
        self._recorder = recorder
        self._mapper = mapper or FieldMapper()
        self._validator = validator or RevenueValidator()
        self._settings = settings or get_ingestion_settings()

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def recorder(self) -> AuditRecorder:
        return self._recorder

    def ingest(
        self,
        processor_name: str,
        raw_lines: Iterable[str],
        prior_month_records: Sequence[ValidatedRecord] | None = None,
        *,
        batch_id: str | None = None,
    ) -> BatchResult:
        """
        Ingest one batch of raw statement lines for ``processor_name``.

        Raises UnknownProcessorError or AuditWriteError; every other problem is
        reported on the returned BatchResult.
        """

        try:
            schema = self._registry.lookup(processor_name)
        except UnknownProcessorError:
            logger.error("Batch rejected: unknown processor=%r", processor_name)
            raise

        batch_id = batch_id or str(uuid.uuid4())
        lines = [line.rstrip("\r\n") for line in raw_lines]
        logger.info(
            "Ingestion started processor=%s batch_id=%s lines=%s",
            schema.processor_name,
            batch_id,
            len(lines),
        )

        header = locate_header(lines, schema, limit=self._settings.header_search_limit)
        if header is None:
            return self._missing_header_result(schema, batch_id)
        header_index, columns = header

        data_lines = [
            (index + 1, line)
            for index, line in enumerate(lines)
            if index > header_index and line.strip()
        ]
        outcomes = self._process_rows(schema, columns, data_lines, batch_id)

        mapped = [outcome.mapping for outcome in outcomes if outcome.mapping is not None]
        mapping_issues = {result.record.source_line: result.issues for result in mapped if result.issues}
        validated = self._validator.validate(
            schema,
            [result.record for result in mapped],
            prior_month_records,
            mapping_issues=mapping_issues,
        )

        row_issues = [outcome.issue for outcome in outcomes if outcome.issue is not None]
        result = replace(
            validated,
            total_rows=len(data_lines),
            issues=row_issues + validated.issues,
            row_errors=[outcome.row_error for outcome in outcomes if outcome.row_error is not None],
        )

        try:
            written = self._flush_audit(schema, outcomes, result, batch_id)
        except AuditWriteError:
            logger.error(
                "Batch failed: audit trail unavailable processor=%s batch_id=%s",
                schema.processor_name,
                batch_id,
            )
            raise

        self._log_summary(result, batch_id, written)
        return result

    def detect_processor(
        self,
        raw_lines: Iterable[str],
        *,
        file_name: str | None = None,
    ) -> ProcessorDetection:
        """
        Fingerprint the leading lines of a statement against registered schemas.
        """

        best = ProcessorDetection(processor_name=None, match_ratio=0.0)
        for index, line in enumerate(raw_lines):
            if index >= self._settings.header_search_limit:
                break
            if not line.strip():
                continue
            try:
                headers = split_line(line, line_number=index + 1)
            except RowParseError:
                continue
            detection = self._registry.detect_processor(headers, file_name=file_name)
            if detection.matched_by == "file_name":
                return detection
            if detection.processor_name and detection.match_ratio > best.match_ratio:
                best = detection
        if best.processor_name is None and file_name:
            return self._registry.detect_processor([], file_name=file_name)
        return best

    def _process_rows(
        self,
        schema: ProcessorSchema,
        columns: Sequence[str],
        data_lines: Sequence[tuple[int, str]],
        batch_id: str,
    ) -> list[_RowOutcome]:
        def handle(item: tuple[int, str]) -> _RowOutcome:
            line_number, line = item
            return self._process_row(schema, columns, line_number, line, batch_id)

        max_workers = self._settings.max_workers
        if max_workers <= 1 or len(data_lines) < 2:
            return [handle(item) for item in data_lines]
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="residuals-map") as executor:
            return list(executor.map(handle, data_lines))

    def _process_row(
        self,
        schema: ProcessorSchema,
        columns: Sequence[str],
        line_number: int,
        line: str,
        batch_id: str,
    ) -> _RowOutcome:
        try:
            raw_row = parse_row(line, columns, line_number, delimiter=schema.delimiter)
        except RowParseError as exc:
            logger.warning(
                "Row parse failed processor=%s line=%s reason=%s",
                schema.processor_name,
                line_number,
                exc.reason,
            )
            return _RowOutcome(
                line_number=line_number,
                row_error=RowError(line_number=line_number, kind=IssueKind.MALFORMED_ROW, reason=exc.reason),
                issue=ValidationIssue(
                    kind=IssueKind.MALFORMED_ROW,
                    severity=IssueSeverity.ERROR,
                    merchant_id=None,
                    message=f"Line {line_number}: {exc.reason}",
                    suggested_action="Fix the row in the source file and re-upload.",
                    context={"line_number": line_number},
                ),
                audit_entry=AuditEntry(
                    action=AuditAction.ROW_PARSE_FAILED,
                    processor_name=schema.processor_name,
                    source_line=line_number,
                    before_value=line,
                    after_value=exc.reason,
                    batch_id=batch_id,
                ),
            )

        try:
            mapping = self._mapper.map_row(schema, raw_row, batch_id=batch_id)
        except MappingError as exc:
            logger.warning(
                "Row mapping failed processor=%s line=%s kind=%s field=%s",
                schema.processor_name,
                line_number,
                exc.kind,
                exc.field_name,
            )
            return _RowOutcome(
                line_number=line_number,
                row_error=RowError(line_number=line_number, kind=exc.kind, reason=exc.message),
                issue=ValidationIssue(
                    kind=IssueKind.MISSING_FIELD,
                    severity=IssueSeverity.ERROR,
                    merchant_id=None,
                    message=f"Line {line_number}: {exc.message}",
                    suggested_action="Fill in the merchant ID and name for this row.",
                    context={"line_number": line_number, "field_name": exc.field_name},
                ),
                audit_entry=AuditEntry(
                    action=AuditAction.MAPPING_REJECTED,
                    processor_name=schema.processor_name,
                    source_line=line_number,
                    before_value=raw_row.get(exc.field_name) if exc.field_name else None,
                    after_value=exc.kind,
                    field_name=exc.field_name,
                    batch_id=batch_id,
                ),
            )
        return _RowOutcome(line_number=line_number, mapping=mapping)

    def _flush_audit(
        self,
        schema: ProcessorSchema,
        outcomes: Sequence[_RowOutcome],
        result: BatchResult,
        batch_id: str,
    ) -> int:
        written = 0
        for outcome in outcomes:
            if outcome.audit_entry is not None:
                self._recorder.record(outcome.audit_entry)
                written += 1
            if outcome.mapping is not None:
                written += self._recorder.record_many(outcome.mapping.audit_entries)

        decisions: list[tuple[int, AuditEntry]] = []
        for record in result.valid_records:
            line_issues = result.issues_for_line(record.source_line)
            decisions.append(
                (
                    record.source_line,
                    AuditEntry(
                        action=AuditAction.FLAGGED if line_issues else AuditAction.VALIDATED,
                        processor_name=schema.processor_name,
                        source_line=record.source_line,
                        before_value=str(record.revenue),
                        after_value=",".join(issue.kind for issue in line_issues) or "valid",
                        confidence=record.mapping_confidence,
                        merchant_id=record.merchant_id,
                        batch_id=batch_id,
                    ),
                )
            )
        for rejected in result.rejected_records:
            record = rejected.record
            decisions.append(
                (
                    record.source_line,
                    AuditEntry(
                        action=AuditAction.REJECTED,
                        processor_name=schema.processor_name,
                        source_line=record.source_line,
                        before_value=str(record.revenue),
                        after_value=",".join(issue.kind for issue in rejected.issues if issue.is_error),
                        confidence=record.mapping_confidence,
                        merchant_id=record.merchant_id,
                        batch_id=batch_id,
                    ),
                )
            )
        decisions.sort(key=lambda item: item[0])
        written += self._recorder.record_many(entry for _, entry in decisions)
        return written

    def _missing_header_result(self, schema: ProcessorSchema, batch_id: str) -> BatchResult:
        logger.warning(
            "Header row not found processor=%s batch_id=%s searched=%s",
            schema.processor_name,
            batch_id,
            self._settings.header_search_limit,
        )
        return BatchResult(
            processor_name=schema.processor_name,
            total_rows=0,
            issues=[
                ValidationIssue(
                    kind=IssueKind.MISSING_FIELD,
                    severity=IssueSeverity.ERROR,
                    merchant_id=None,
                    message=(
                        f"No header row with '{schema.merchant_id_field}' and "
                        f"'{schema.revenue_field}' columns in the first "
                        f"{self._settings.header_search_limit} lines."
                    ),
                    suggested_action="Confirm the file belongs to this processor.",
                    context={
                        "merchant_id_field": schema.merchant_id_field,
                        "revenue_field": schema.revenue_field,
                    },
                )
            ],
        )

    def _log_summary(self, result: BatchResult, batch_id: str, audit_entries: int) -> None:
        if self._settings.log_validation_issues:
            for issue in result.issues:
                if issue.severity == IssueSeverity.INFO:
                    continue
                logger.warning(
                    "Validation issue processor=%s line=%s kind=%s severity=%s merchant_id=%s message=%s",
                    result.processor_name,
                    issue.source_line,
                    issue.kind,
                    issue.severity,
                    issue.merchant_id,
                    issue.message,
                )

        counts = result.issue_counts()
        logger.info(
            "Ingestion finished processor=%s batch_id=%s rows=%s valid=%s rejected=%s "
            "row_errors=%s errors=%s warnings=%s total_revenue=%s audit_entries=%s",
            result.processor_name,
            batch_id,
            result.total_rows,
            len(result.valid_records),
            len(result.rejected_records),
            len(result.row_errors),
            counts.get(IssueSeverity.ERROR, 0),
            counts.get(IssueSeverity.WARNING, 0),
            result.total_revenue,
            audit_entries,
        )


def build_ingestion_orchestrator(
    sink: AuditSink,
    *,
    registry: SchemaRegistry | None = None,
    settings: IngestionSettings | None = None,
) -> IngestionOrchestrator:
    """
    Wire an orchestrator that audits to ``sink``; build one per unit of work.
    """

    return IngestionOrchestrator(
        recorder=AuditRecorder(sink),
        registry=registry,
        settings=settings,
    )
