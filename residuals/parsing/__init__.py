"""
residuals/parsing package marker.
"""

from residuals.parsing.numbers import (
    CoercedNumber,
    CoercionStatus,
    is_blank,
    parse_decimal,
    parse_transaction_count,
)
from residuals.parsing.row_parser import locate_header, parse_row, split_line

__all__ = [
    "CoercedNumber",
    "CoercionStatus",
    "is_blank",
    "locate_header",
    "parse_decimal",
    "parse_row",
    "parse_transaction_count",
    "split_line",
]
