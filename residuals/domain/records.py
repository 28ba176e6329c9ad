"""
residuals/domain/records.py

Row and record models flowing through the ingestion pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping


def normalize_column_name(name: str) -> str:
    """
    Normalize a column name for case/punctuation-insensitive matching.
    """

    return "".join(ch for ch in name.strip().lower() if ch.isalnum())


@dataclass(frozen=True)
class RawRow:
    """
    One statement line split into named string values.

    Values stay strings; numeric coercion happens in the field mapper.
    """

    values: Mapping[str, str]
    line_number: int

    def has(self, column: str) -> bool:
        return self.resolve_column(column) is not None

    def resolve_column(self, column: str) -> str | None:
        """
        Return the actual column name matching ``column``, exact match first.
        """

        if column in self.values:
            return column
        wanted = normalize_column_name(column)
        if not wanted:
            return None
        for candidate in self.values:
            if normalize_column_name(candidate) == wanted:
                return candidate
        return None

    def get(self, column: str) -> str | None:
        resolved = self.resolve_column(column)
        if resolved is None:
            return None
        return self.values[resolved]


@dataclass(frozen=True)
class CandidateRecord:
    """
    Typed merchant-revenue record produced by the field mapper.
    """

    merchant_id: str
    merchant_name: str
    revenue: Decimal
    volume: Decimal
    transaction_count: int
    processor_name: str
    source_line: int
    mapping_confidence: int


@dataclass(frozen=True)
class ValidatedRecord:
    """
    A record that passed validation, as handed to (or loaded back from) storage.
    """

    merchant_id: str
    merchant_name: str
    revenue: Decimal
    volume: Decimal
    transaction_count: int
    processor_name: str
    mapping_confidence: int = 100

    @classmethod
    def from_candidate(cls, record: CandidateRecord) -> "ValidatedRecord":
        return cls(
            merchant_id=record.merchant_id,
            merchant_name=record.merchant_name,
            revenue=record.revenue,
            volume=record.volume,
            transaction_count=record.transaction_count,
            processor_name=record.processor_name,
            mapping_confidence=record.mapping_confidence,
        )
