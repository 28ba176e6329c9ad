"""
residuals/domain/processor_schema.py

Declarative per-processor statement schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from residuals.domain.errors import SchemaConfigurationError

DEFAULT_CONFIDENCE_THRESHOLD = 60


class RevenueUnit:
    CURRENCY = "currency"
    CENTS = "cents"
    BASIS_POINTS = "basis_points"


ALLOWED_REVENUE_UNITS = {
    RevenueUnit.CURRENCY,
    RevenueUnit.CENTS,
    RevenueUnit.BASIS_POINTS,
}

ALLOWED_DECIMAL_SEPARATORS = {".", ","}


@dataclass(frozen=True)
class RevenueRange:
    """
    Inclusive currency-denominated bounds for a plausible monthly residual.
    """

    minimum: Decimal
    maximum: Decimal

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise SchemaConfigurationError(
                f"Revenue range minimum {self.minimum} exceeds maximum {self.maximum}."
            )

    def contains(self, value: Decimal) -> bool:
        return self.minimum <= value <= self.maximum

    def describe(self) -> str:
        return f"${self.minimum:,}-${self.maximum:,}"


@dataclass(frozen=True)
class ProcessorSchema:
    """
    Column layout and plausibility bounds for one processor's statements.

    ``revenue_field`` is the true residual payout column and must never be
    the same column as ``volume_field``; confusing the two is the failure
    this whole pipeline exists to catch.
    """

    processor_name: str
    revenue_field: str
    volume_field: str
    transaction_count_field: str
    merchant_id_field: str
    merchant_name_field: str
    revenue_range: RevenueRange
    confidence_threshold: int = DEFAULT_CONFIDENCE_THRESHOLD
    revenue_unit: str = RevenueUnit.CURRENCY
    decimal_separator: str = "."
    delimiter: str = ","
    signature: tuple[str, ...] = ()
    file_hints: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        name = self.processor_name.strip() if self.processor_name else ""
        if not name:
            raise SchemaConfigurationError("processor_name is required.")

        for attribute in self.field_attributes():
            value = getattr(self, attribute)
            if not isinstance(value, str) or not value.strip():
                raise SchemaConfigurationError(f"{name}: {attribute} is required.")

        if self.revenue_field.strip().lower() == self.volume_field.strip().lower():
            raise SchemaConfigurationError(
                f"{name}: revenue_field and volume_field must be different columns "
                f"(both are '{self.revenue_field}')."
            )
        if not 0 <= self.confidence_threshold <= 100:
            raise SchemaConfigurationError(
                f"{name}: confidence_threshold must be between 0 and 100."
            )
        if self.revenue_unit not in ALLOWED_REVENUE_UNITS:
            allowed = ", ".join(sorted(ALLOWED_REVENUE_UNITS))
            raise SchemaConfigurationError(
                f"{name}: unsupported revenue_unit '{self.revenue_unit}'. Allowed values: {allowed}."
            )
        if self.decimal_separator not in ALLOWED_DECIMAL_SEPARATORS:
            raise SchemaConfigurationError(
                f"{name}: decimal_separator must be '.' or ','."
            )
        if len(self.delimiter) != 1 or self.delimiter == '"':
            raise SchemaConfigurationError(f"{name}: delimiter must be one non-quote character.")

        object.__setattr__(self, "processor_name", name)
        if not self.signature:
            object.__setattr__(
                self,
                "signature",
                tuple(getattr(self, attribute) for attribute in self.field_attributes()),
            )
        object.__setattr__(
            self,
            "file_hints",
            tuple(hint.strip().lower() for hint in self.file_hints if hint and hint.strip()),
        )

    @staticmethod
    def field_attributes() -> tuple[str, ...]:
        return (
            "merchant_id_field",
            "merchant_name_field",
            "revenue_field",
            "volume_field",
            "transaction_count_field",
        )

    @property
    def thousands_separator(self) -> str:
        return "," if self.decimal_separator == "." else "."
