"""
residuals/registry/builtin_schemas.py

Processor schemas known at build time.

The revenue column is the agent residual, never the processing volume;
the ranges bound a single merchant's monthly residual. Thresholds are set
so that any single confidence penalty flags the row for review.
"""

from __future__ import annotations

from decimal import Decimal

from residuals.domain.processor_schema import ProcessorSchema, RevenueRange

BUILTIN_SCHEMAS: tuple[ProcessorSchema, ...] = (
    ProcessorSchema(
        processor_name="Clearent",
        merchant_id_field="Merchant ID",
        merchant_name_field="Merchant",
        revenue_field="Net",
        volume_field="Sales Amount",
        transaction_count_field="Transactions",
        revenue_range=RevenueRange(Decimal("0"), Decimal("10000")),
        confidence_threshold=95,
        signature=("Merchant ID", "Merchant", "Transactions", "Sales Amount", "Net"),
        file_hints=("clearent",),
    ),
    ProcessorSchema(
        processor_name="TRX",
        merchant_id_field="Client",
        merchant_name_field="Dba",
        # Column 37 in TRX exports; "Net Sales Amount" is gross volume.
        revenue_field="Agent Residual",
        volume_field="Net Sales Amount",
        transaction_count_field="Net Sales Count",
        revenue_range=RevenueRange(Decimal("0"), Decimal("1000")),
        confidence_threshold=98,
        signature=("Client", "Dba", "Agent Residual", "Net Sales Amount"),
        file_hints=("trx",),
    ),
    ProcessorSchema(
        processor_name="Shift4",
        merchant_id_field="MID",
        merchant_name_field="Business Name",
        revenue_field="Payout Amount",
        volume_field="Processing Volume",
        transaction_count_field="Transaction Count",
        revenue_range=RevenueRange(Decimal("0"), Decimal("50000")),
        confidence_threshold=95,
        signature=("MID", "Business Name", "Payout Amount"),
        file_hints=("shift4",),
    ),
    ProcessorSchema(
        processor_name="Global Payments TSYS",
        merchant_id_field="Merchant ID",
        merchant_name_field="Merchant Name",
        revenue_field="Net Income",
        volume_field="Monthly Volume",
        transaction_count_field="Transaction Count",
        revenue_range=RevenueRange(Decimal("0"), Decimal("15000")),
        confidence_threshold=95,
        signature=("Merchant ID", "Net Income", "Monthly Volume"),
        file_hints=("tsys",),
    ),
    ProcessorSchema(
        processor_name="Micamp Solutions",
        merchant_id_field="Merchant ID",
        merchant_name_field="Merchant",
        revenue_field="Net",
        volume_field="Sales Amount",
        transaction_count_field="Transactions",
        revenue_range=RevenueRange(Decimal("0"), Decimal("8000")),
        confidence_threshold=95,
        signature=("Merchant ID", "Merchant", "Net", "Sales Amount"),
        file_hints=("micamp",),
    ),
)
