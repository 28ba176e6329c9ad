"""
residuals/parsing/numbers.py

Lenient numeric coercion for statement cells.

Processor exports mix currency symbols, thousands separators, accounting
negatives like ``(12.50)`` and trailing minus signs. Coercion never raises:
it reports whether the value was read, defaulted from blank, or fell back
to zero because the text was not a number.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

CURRENCY_SYMBOLS = "$€£¥"

# Accounting exports write zero as a lone dash.
_ZERO_PLACEHOLDERS = {"-", "--"}


class CoercionStatus:
    MAPPED = "mapped"
    DEFAULTED = "defaulted"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class CoercedNumber:
    """
    Outcome of coercing one raw cell.
    """

    value: Decimal | int
    status: str
    raw: str | None

    @property
    def used_fallback(self) -> bool:
        return self.status == CoercionStatus.FALLBACK

    @property
    def is_blank(self) -> bool:
        return self.status == CoercionStatus.DEFAULTED


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip().strip('"').strip()


def _grouping_is_consistent(text: str, decimal_separator: str, thousands_separator: str) -> bool:
    """
    Thousands separators may only appear before the decimal separator, in groups of three.
    """

    integer_part, _, fraction_part = text.partition(decimal_separator)
    if thousands_separator in fraction_part:
        return False
    if thousands_separator not in integer_part:
        return True

    groups = integer_part.lstrip("+-").split(thousands_separator)
    if not 1 <= len(groups[0]) <= 3:
        return False
    return all(len(group) == 3 and group.isdigit() for group in groups[1:])


def parse_decimal(raw: str | None, *, decimal_separator: str = ".") -> CoercedNumber:
    """
    Coerce a money-like cell to Decimal.
    """

    if is_blank(raw):
        return CoercedNumber(Decimal("0"), CoercionStatus.DEFAULTED, raw)

    text = raw.strip().strip('"').strip()
    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1].strip()
    if text.endswith("%"):
        text = text[:-1].strip()

    for symbol in CURRENCY_SYMBOLS:
        text = text.replace(symbol, "")
    text = text.replace("\u00a0", "").replace(" ", "")

    if text in _ZERO_PLACEHOLDERS:
        return CoercedNumber(Decimal("0"), CoercionStatus.DEFAULTED, raw)
    if len(text) > 1 and text.endswith("-"):
        negative = not negative
        text = text[:-1]

    thousands_separator = "," if decimal_separator == "." else "."
    if not _grouping_is_consistent(text, decimal_separator, thousands_separator):
        # "1.234,56" under a "." schema would otherwise read as 1.23456.
        return CoercedNumber(Decimal("0"), CoercionStatus.FALLBACK, raw)
    text = text.replace(thousands_separator, "")
    if decimal_separator != ".":
        text = text.replace(decimal_separator, ".")

    try:
        value = Decimal(text)
    except InvalidOperation:
        return CoercedNumber(Decimal("0"), CoercionStatus.FALLBACK, raw)
    if not value.is_finite():
        return CoercedNumber(Decimal("0"), CoercionStatus.FALLBACK, raw)

    return CoercedNumber(-value if negative else value, CoercionStatus.MAPPED, raw)


def parse_transaction_count(raw: str | None, *, decimal_separator: str = ".") -> CoercedNumber:
    """
    Coerce a transaction-count cell to a non-negative int.
    """

    coerced = parse_decimal(raw, decimal_separator=decimal_separator)
    if coerced.status != CoercionStatus.MAPPED:
        return CoercedNumber(0, coerced.status, raw)

    value = coerced.value
    if value < 0 or value != value.to_integral_value():
        return CoercedNumber(0, CoercionStatus.FALLBACK, raw)
    return CoercedNumber(int(value), CoercionStatus.MAPPED, raw)
