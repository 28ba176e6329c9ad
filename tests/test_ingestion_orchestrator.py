"""
tests/test_ingestion_orchestrator.py

End-to-end batch ingestion through IngestionOrchestrator.

Every collaborator is in-memory: an explicit registry, an in-memory audit
sink, and settings built directly rather than read from the environment.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from residuals.audit.recorder import AuditRecorder, InMemoryAuditSink
from residuals.config import IngestionSettings, ValidationSettings
from residuals.domain.audit import AuditAction, AuditEntry
from residuals.domain.errors import AuditWriteError, MappingErrorKind, UnknownProcessorError
from residuals.domain.issues import IssueKind, IssueSeverity
from residuals.domain.processor_schema import ProcessorSchema, RevenueRange
from residuals.domain.records import ValidatedRecord
from residuals.registry.builtin_schemas import BUILTIN_SCHEMAS
from residuals.registry.schema_registry import SchemaRegistry
from residuals.services.ingestion_orchestrator import IngestionOrchestrator, build_ingestion_orchestrator
from residuals.validators.revenue_validator import OUT_OF_RANGE_ACTION, RevenueValidator

HEADER = "MID,Name,Net,Sales,Transactions"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _schema(name: str = "Clearent", maximum: str = "10000") -> ProcessorSchema:
    return ProcessorSchema(
        processor_name=name,
        revenue_field="Net",
        volume_field="Sales",
        transaction_count_field="Transactions",
        merchant_id_field="MID",
        merchant_name_field="Name",
        revenue_range=RevenueRange(Decimal("0"), Decimal(maximum)),
    )


class _FailingSink:
    def append(self, entry: AuditEntry) -> None:
        raise OSError("disk full")


def _orchestrator(
    *,
    sink=None,
    max_workers: int = 1,
    schemas=None,
) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        registry=SchemaRegistry(schemas or [_schema(), _schema("Small", maximum="5000")]),
        recorder=AuditRecorder(sink if sink is not None else InMemoryAuditSink()),
        validator=RevenueValidator(ValidationSettings()),
        settings=IngestionSettings(max_workers=max_workers, header_search_limit=10),
    )


def _good_lines(count: int) -> list[str]:
    lines = [HEADER]
    for index in range(count):
        lines.append(f"MERCH{index:04d},Merchant {index},{10 + index}.25,{1000 + index}.00,{5 + index}")
    return lines


@pytest.fixture()
def sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    def test_zero_transactions_warns_but_record_is_valid(self, sink: InMemoryAuditSink) -> None:
        result = _orchestrator(sink=sink).ingest("Clearent", [HEADER, "M1,Acme,25.83,0,0"])

        assert len(result.valid_records) == 1
        record = result.valid_records[0]
        assert record.revenue == Decimal("25.83")
        assert record.mapping_confidence == 80
        warnings = [issue.kind for issue in result.issues if issue.severity == IssueSeverity.WARNING]
        assert warnings == [IssueKind.REVENUE_WITHOUT_TRANSACTIONS]
        assert not result.has_errors
        assert result.total_revenue == Decimal("25.83")

    def test_volume_sized_revenue_is_rejected(self) -> None:
        result = _orchestrator().ingest("Small", [HEADER, "MERCH001,Big Box,707445.00,0,0"])

        assert result.valid_records == []
        assert len(result.rejected_records) == 1
        errors = [issue for issue in result.issues if issue.is_error]
        assert [issue.kind for issue in errors] == [IssueKind.OUT_OF_RANGE]
        assert errors[0].suggested_action == OUT_OF_RANGE_ACTION
        assert result.total_revenue == Decimal("0")

    def test_duplicate_merchant_counts_once(self) -> None:
        lines = [HEADER, "M9,First,100.00,1000,10", "M9,Second,250.00,2000,10"]

        result = _orchestrator().ingest("Clearent", lines)

        assert [record.source_line for record in result.valid_records] == [2]
        assert len(result.rejected_records) == 1
        assert result.rejected_records[0].record.source_line == 3
        assert IssueKind.DUPLICATE_MERCHANT_ID in [issue.kind for issue in result.rejected_records[0].issues]
        assert result.total_revenue == Decimal("100.00")

    def test_month_over_month_jump_is_a_warning(self) -> None:
        prior = [
            ValidatedRecord(
                merchant_id="MERCH001",
                merchant_name="Acme",
                revenue=Decimal("100.00"),
                volume=Decimal("1000"),
                transaction_count=10,
                processor_name="Clearent",
            )
        ]

        result = _orchestrator().ingest("Clearent", [HEADER, "MERCH001,Acme,700.00,7000,10"], prior)

        kinds = [issue.kind for issue in result.issues]
        assert kinds == [IssueKind.MONTH_OVER_MONTH_VARIANCE]
        assert len(result.valid_records) == 1
        assert not result.has_errors


# ---------------------------------------------------------------------------
# Batch properties
# ---------------------------------------------------------------------------


class TestBatchProperties:
    @pytest.mark.parametrize("count", [1, 5, 40])
    def test_well_formed_unique_rows_are_all_valid(self, count: int) -> None:
        result = _orchestrator().ingest("Clearent", _good_lines(count))

        assert len(result.valid_records) == count
        assert result.total_rows == count
        assert not [issue for issue in result.issues if issue.is_error]

    def test_total_revenue_matches_valid_records(self) -> None:
        result = _orchestrator().ingest("Clearent", _good_lines(25))

        assert result.total_revenue == sum(
            (record.revenue for record in result.valid_records),
            Decimal("0"),
        )
        assert result.total_transactions == sum(r.transaction_count for r in result.valid_records)

    def test_rerunning_identical_input_gives_identical_result(self) -> None:
        orchestrator = _orchestrator()
        lines = _good_lines(10) + ["MERCH0001,Dup,5.00,10,1", "bad,row"]

        first = orchestrator.ingest("Clearent", lines)
        second = orchestrator.ingest("Clearent", lines)

        assert first == second

    def test_parallel_mapping_matches_sequential(self) -> None:
        lines = _good_lines(60) + ["MERCH0003,Dup,5.00,10,1", "broken"]

        sequential = _orchestrator(max_workers=1).ingest("Clearent", lines)
        parallel = _orchestrator(max_workers=4).ingest("Clearent", lines)

        assert parallel == sequential

    def test_processor_name_is_resolved_case_insensitively(self) -> None:
        result = _orchestrator().ingest("clearent", _good_lines(1))

        assert result.processor_name == "Clearent"


# ---------------------------------------------------------------------------
# Row-level failures
# ---------------------------------------------------------------------------


class TestRowFailures:
    def test_malformed_row_is_recorded_and_skipped(self) -> None:
        lines = _good_lines(2) + ["MERCH9,Short,1.00", 'MERCH8,"Unclosed,1.00,1,1']

        result = _orchestrator().ingest("Clearent", lines)

        assert len(result.valid_records) == 2
        assert [error.line_number for error in result.row_errors] == [4, 5]
        assert {error.kind for error in result.row_errors} == {IssueKind.MALFORMED_ROW}
        batch_issues = [issue for issue in result.issues if issue.is_batch_level]
        assert [issue.kind for issue in batch_issues] == [IssueKind.MALFORMED_ROW] * 2
        assert all(issue.severity == IssueSeverity.ERROR for issue in batch_issues)
        assert result.total_rows == 4

    def test_missing_identifier_is_a_row_error(self) -> None:
        lines = [HEADER, ",No Id,10.00,100,5", "MERCH001,,10.00,100,5", "MERCH002,Ok,10.00,100,5"]

        result = _orchestrator().ingest("Clearent", lines)

        assert [record.merchant_id for record in result.valid_records] == ["MERCH002"]
        assert [error.kind for error in result.row_errors] == [MappingErrorKind.MISSING_IDENTIFIER] * 2
        assert [issue.kind for issue in result.issues if issue.is_error] == [IssueKind.MISSING_FIELD] * 2

    def test_blank_lines_are_ignored(self) -> None:
        lines = [HEADER, "", "MERCH001,Acme,10.00,100,5", "   ", "MERCH002,Beta,11.00,100,5", ""]

        result = _orchestrator().ingest("Clearent", lines)

        assert result.total_rows == 2
        assert [record.source_line for record in result.valid_records] == [3, 5]
        assert result.row_errors == []

    def test_header_after_title_rows(self) -> None:
        lines = ["Clearent Residuals,,,,", "March 2024", HEADER, "MERCH001,Acme,10.00,100,5"]

        result = _orchestrator().ingest("Clearent", lines)

        assert len(result.valid_records) == 1
        assert result.valid_records[0].source_line == 4

    def test_missing_header_returns_empty_result(self, sink: InMemoryAuditSink) -> None:
        result = _orchestrator(sink=sink).ingest("Clearent", ["Foo,Bar", "1,2"])

        assert result.total_rows == 0
        assert result.valid_records == []
        assert [issue.kind for issue in result.issues] == [IssueKind.MISSING_FIELD]
        assert result.has_errors
        assert len(sink) == 0

    def test_no_good_rows_still_returns_result(self) -> None:
        result = _orchestrator().ingest("Clearent", [HEADER, "only,two"])

        assert result.valid_records == []
        assert result.total_rows == 1
        assert len(result.row_errors) == 1


# ---------------------------------------------------------------------------
# Batch-level failures and audit trail
# ---------------------------------------------------------------------------


class TestAuditAndAborts:
    def test_unknown_processor_aborts(self) -> None:
        with pytest.raises(UnknownProcessorError):
            _orchestrator().ingest("Paysafe", _good_lines(1))

    def test_audit_failure_aborts_batch(self) -> None:
        with pytest.raises(AuditWriteError) as excinfo:
            _orchestrator(sink=_FailingSink()).ingest("Clearent", _good_lines(3))

        assert isinstance(excinfo.value.__cause__, OSError)

    def test_every_decision_is_audited(self, sink: InMemoryAuditSink) -> None:
        lines = [
            HEADER,
            "MERCH001,Acme,10.00,100,5",
            "MERCH002,Zero,25.83,0,0",
            "MERCH003,Huge,707445.00,0,10",
            "MERCH004,Garbage,abc,100,5",
            "broken",
        ]

        _orchestrator(sink=sink).ingest("Clearent", lines, batch_id="batch-42")

        entries = sink.entries
        actions = [entry.action for entry in entries]
        assert actions.count(AuditAction.ROW_PARSE_FAILED) == 1
        assert actions.count(AuditAction.COERCION_FALLBACK) == 1
        assert actions.count(AuditAction.VALIDATED) == 1
        assert actions.count(AuditAction.FLAGGED) == 2
        assert actions.count(AuditAction.REJECTED) == 1
        assert {entry.batch_id for entry in entries} == {"batch-42"}
        timestamps = [entry.timestamp for entry in entries]
        assert all(stamp is not None for stamp in timestamps)
        assert timestamps == sorted(set(timestamps))

        rejected = next(entry for entry in entries if entry.action == AuditAction.REJECTED)
        assert rejected.merchant_id == "MERCH003"
        assert rejected.after_value == IssueKind.OUT_OF_RANGE

    def test_each_row_maps_five_fields(self, sink: InMemoryAuditSink) -> None:
        _orchestrator(sink=sink).ingest("Clearent", _good_lines(3))

        mapped = [entry for entry in sink.entries if entry.field_name is not None]
        assert len(mapped) == 15
        assert [entry.action for entry in sink.entries[-3:]] == [AuditAction.VALIDATED] * 3

    def test_built_orchestrators_audit_to_their_own_sink(self) -> None:
        registry = SchemaRegistry([_schema()])
        first, second = InMemoryAuditSink(), InMemoryAuditSink()

        build_ingestion_orchestrator(first, registry=registry).ingest("Clearent", _good_lines(2))
        build_ingestion_orchestrator(second, registry=registry).ingest("Clearent", _good_lines(1))

        assert len(first) > len(second) > 0


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class TestDetectProcessor:
    def test_detects_from_header_after_title_rows(self) -> None:
        orchestrator = _orchestrator(schemas=BUILTIN_SCHEMAS)
        lines = [
            "Residual Report",
            "Client,Dba,Agent Residual,Net Sales Amount,Net Sales Count",
            "C100,Acme,12.00,1000.00,10",
        ]

        detection = orchestrator.detect_processor(lines)

        assert detection.processor_name == "TRX"

    def test_file_name_hint_wins(self) -> None:
        orchestrator = _orchestrator(schemas=BUILTIN_SCHEMAS)

        detection = orchestrator.detect_processor(["Date,Amount"], file_name="shift4-2024-03.csv")

        assert detection.processor_name == "Shift4"
        assert detection.matched_by == "file_name"

    def test_nothing_detected(self) -> None:
        orchestrator = _orchestrator(schemas=BUILTIN_SCHEMAS)

        detection = orchestrator.detect_processor(["Date,Amount", "2024-03-01,10"])

        assert detection.processor_name is None
