from __future__ import annotations

import unittest
from decimal import Decimal

from residuals.domain.audit import AuditAction
from residuals.domain.errors import MappingError, MappingErrorKind
from residuals.domain.issues import IssueKind, IssueSeverity
from residuals.domain.processor_schema import ProcessorSchema, RevenueRange, RevenueUnit
from residuals.domain.records import RawRow
from residuals.mappers.field_mapper import FieldMapper
from residuals.registry.builtin_schemas import BUILTIN_SCHEMAS


def _schema(**overrides) -> ProcessorSchema:
    fields = {
        "processor_name": "Clearent",
        "revenue_field": "Net",
        "volume_field": "Sales",
        "transaction_count_field": "Transactions",
        "merchant_id_field": "MID",
        "merchant_name_field": "Name",
        "revenue_range": RevenueRange(Decimal("0"), Decimal("10000")),
    }
    fields.update(overrides)
    return ProcessorSchema(**fields)


def _row(line_number: int = 2, **values: str) -> RawRow:
    base = {"MID": "M1001", "Name": "Acme", "Net": "25.83", "Sales": "1000.00", "Transactions": "10"}
    base.update(values)
    return RawRow(values=base, line_number=line_number)


class TestFieldMapper(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = FieldMapper()
        self.schema = _schema()

    def test_maps_clean_row_with_full_confidence(self) -> None:
        result = self.mapper.map_row(self.schema, _row(), batch_id="batch-1")

        record = result.record
        self.assertEqual(record.merchant_id, "M1001")
        self.assertEqual(record.merchant_name, "Acme")
        self.assertEqual(record.revenue, Decimal("25.83"))
        self.assertEqual(record.volume, Decimal("1000.00"))
        self.assertEqual(record.transaction_count, 10)
        self.assertEqual(record.processor_name, "Clearent")
        self.assertEqual(record.source_line, 2)
        self.assertEqual(record.mapping_confidence, 100)
        self.assertEqual(result.issues, ())

    def test_every_extraction_is_audited(self) -> None:
        result = self.mapper.map_row(self.schema, _row(Sales=""), batch_id="batch-1")

        by_field = {entry.field_name: entry for entry in result.audit_entries}
        self.assertEqual(set(by_field), {"MID", "Name", "Net", "Sales", "Transactions"})
        self.assertEqual(by_field["Net"].action, AuditAction.FIELD_MAPPED)
        self.assertEqual(by_field["Net"].before_value, "25.83")
        self.assertEqual(by_field["Net"].after_value, "25.83")
        self.assertEqual(by_field["Sales"].action, AuditAction.FIELD_DEFAULTED)
        self.assertEqual(by_field["Sales"].after_value, "0")
        for entry in result.audit_entries:
            self.assertEqual(entry.batch_id, "batch-1")
            self.assertEqual(entry.merchant_id, "M1001")
            self.assertEqual(entry.source_line, 2)
            self.assertIsNone(entry.timestamp)

    def test_zero_transactions_with_revenue_costs_confidence(self) -> None:
        result = self.mapper.map_row(self.schema, _row(MID="M1", Sales="0", Transactions="0"))

        self.assertEqual(result.record.revenue, Decimal("25.83"))
        self.assertEqual(result.record.mapping_confidence, 80)
        self.assertEqual(result.issues, ())
        count_entry = next(e for e in result.audit_entries if e.field_name == "Transactions")
        self.assertEqual(count_entry.confidence_delta, -20)

    def test_blank_transaction_count_is_not_penalized(self) -> None:
        result = self.mapper.map_row(self.schema, _row(Transactions=""))

        self.assertEqual(result.record.transaction_count, 0)
        self.assertEqual(result.record.mapping_confidence, 100)

    def test_non_numeric_revenue_falls_back_with_warning(self) -> None:
        result = self.mapper.map_row(self.schema, _row(Net="N/A"))

        self.assertEqual(result.record.revenue, Decimal("0"))
        self.assertEqual(result.record.mapping_confidence, 80)
        self.assertEqual(len(result.issues), 1)
        issue = result.issues[0]
        self.assertEqual(issue.kind, IssueKind.MISSING_FIELD)
        self.assertEqual(issue.severity, IssueSeverity.WARNING)
        self.assertEqual(issue.source_line, 2)
        net_entry = next(e for e in result.audit_entries if e.field_name == "Net")
        self.assertEqual(net_entry.action, AuditAction.COERCION_FALLBACK)
        self.assertEqual(net_entry.confidence_delta, -20)

    def test_european_formatted_revenue_is_not_read_as_a_smaller_number(self) -> None:
        result = self.mapper.map_row(self.schema, _row(Net="1.234,56"))

        self.assertEqual(result.record.revenue, Decimal("0"))
        self.assertEqual(result.record.mapping_confidence, 80)
        self.assertEqual([issue.kind for issue in result.issues], [IssueKind.MISSING_FIELD])
        net_entry = next(e for e in result.audit_entries if e.field_name == "Net")
        self.assertEqual(net_entry.action, AuditAction.COERCION_FALLBACK)

    def test_fallback_penalty_applies_once(self) -> None:
        result = self.mapper.map_row(self.schema, _row(Net="abc", Sales="xyz"))

        self.assertEqual(result.record.mapping_confidence, 80)
        self.assertEqual(
            [issue.kind for issue in result.issues],
            [IssueKind.MISSING_FIELD, IssueKind.MISSING_FIELD],
        )

    def test_low_confidence_record_is_flagged_not_dropped(self) -> None:
        result = self.mapper.map_row(
            self.schema,
            _row(Net="707,445.00", Sales="n/a", Transactions="0"),
        )

        self.assertEqual(result.record.revenue, Decimal("707445.00"))
        self.assertEqual(result.record.mapping_confidence, 40)
        kinds = [(issue.kind, issue.severity) for issue in result.issues]
        self.assertIn((IssueKind.OUT_OF_RANGE, IssueSeverity.WARNING), kinds)
        self.assertTrue(all(issue.severity == IssueSeverity.WARNING for issue in result.issues))

    def test_low_confidence_without_range_problem_is_missing_field(self) -> None:
        schema = _schema(confidence_threshold=90)

        result = self.mapper.map_row(schema, _row(Transactions="0"))

        self.assertEqual(result.record.mapping_confidence, 80)
        self.assertEqual([issue.kind for issue in result.issues], [IssueKind.MISSING_FIELD])
        self.assertEqual(result.issues[0].context, {"confidence": 80, "threshold": 90})

    def test_missing_merchant_id_raises(self) -> None:
        with self.assertRaises(MappingError) as ctx:
            self.mapper.map_row(self.schema, _row(line_number=9, MID='  ""  '))

        error = ctx.exception
        self.assertEqual(error.kind, MappingErrorKind.MISSING_IDENTIFIER)
        self.assertEqual(error.field_name, "MID")
        self.assertEqual(error.line_number, 9)

    def test_missing_merchant_name_column_raises(self) -> None:
        row = RawRow(values={"MID": "M1001", "Net": "1"}, line_number=4)

        with self.assertRaises(MappingError) as ctx:
            self.mapper.map_row(self.schema, row)

        self.assertEqual(ctx.exception.field_name, "Name")

    def test_identifiers_are_unquoted(self) -> None:
        result = self.mapper.map_row(self.schema, _row(Name='"Acme Diner"'))

        self.assertEqual(result.record.merchant_name, "Acme Diner")

    def test_cents_are_converted_to_currency(self) -> None:
        schema = _schema(revenue_unit=RevenueUnit.CENTS)

        result = self.mapper.map_row(schema, _row(Net="2583"))

        self.assertEqual(result.record.revenue, Decimal("25.83"))
        converted = [e for e in result.audit_entries if e.action == AuditAction.UNIT_CONVERTED]
        self.assertEqual(len(converted), 1)
        self.assertEqual(converted[0].after_value, "25.83")

    def test_basis_points_apply_to_volume(self) -> None:
        schema = _schema(revenue_unit=RevenueUnit.BASIS_POINTS)

        result = self.mapper.map_row(schema, _row(Net="25", Sales="10000"))

        self.assertEqual(result.record.revenue, Decimal("25"))

    def test_comma_decimal_schema(self) -> None:
        schema = _schema(decimal_separator=",")

        result = self.mapper.map_row(schema, _row(Net="1.234,50", Sales="20.000,00", Transactions="30"))

        self.assertEqual(result.record.revenue, Decimal("1234.50"))
        self.assertEqual(result.record.volume, Decimal("20000.00"))


class TestBuiltinSchemaConfidence(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = FieldMapper()
        self.schemas = {schema.processor_name: schema for schema in BUILTIN_SCHEMAS}

    def test_trx_volume_in_revenue_column_is_flagged(self) -> None:
        row = RawRow(
            values={
                "Client": "C100234",
                "Dba": "Acme Diner",
                "Agent Residual": "48,210.00",
                "Net Sales Amount": "48,210.00",
                "Net Sales Count": "310",
            },
            line_number=6,
        )

        result = self.mapper.map_row(self.schemas["TRX"], row)

        self.assertEqual(result.record.mapping_confidence, 80)
        self.assertEqual([issue.kind for issue in result.issues], [IssueKind.OUT_OF_RANGE])
        self.assertEqual(result.issues[0].severity, IssueSeverity.WARNING)
        self.assertEqual(result.issues[0].context, {"confidence": 80, "threshold": 98})

    def test_any_single_penalty_flags_a_builtin_schema(self) -> None:
        row = RawRow(
            values={
                "Merchant ID": "MERCH0001",
                "Merchant": "Acme Diner",
                "Transactions": "0",
                "Sales Amount": "0",
                "Net": "25.83",
            },
            line_number=2,
        )

        for name in ("Clearent", "Micamp Solutions"):
            with self.subTest(processor=name):
                result = self.mapper.map_row(self.schemas[name], row)

                self.assertEqual(result.record.mapping_confidence, 80)
                self.assertEqual([issue.kind for issue in result.issues], [IssueKind.MISSING_FIELD])

    def test_clean_row_is_not_flagged(self) -> None:
        row = RawRow(
            values={
                "MID": "S4-00012",
                "Business Name": "Beta",
                "Payout Amount": "310.00",
                "Processing Volume": "42,000.00",
                "Transaction Count": "512",
            },
            line_number=2,
        )

        result = self.mapper.map_row(self.schemas["Shift4"], row)

        self.assertEqual(result.record.mapping_confidence, 100)
        self.assertEqual(result.issues, ())


if __name__ == "__main__":
    unittest.main()
