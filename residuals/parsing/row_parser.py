"""
residuals/parsing/row_parser.py

Splits raw statement lines into named string values.
"""

from __future__ import annotations

import csv
from typing import Sequence

from residuals.domain.errors import RowParseError
from residuals.domain.processor_schema import ProcessorSchema
from residuals.domain.records import RawRow, normalize_column_name


def _read(text: str, delimiter: str, *, strict: bool) -> list[list[str]]:
    return list(csv.reader([text], delimiter=delimiter, skipinitialspace=True, strict=strict))


def split_line(raw_line: str, *, delimiter: str = ",", line_number: int = 0) -> list[str]:
    """
    Split one delimited line into stripped cell strings.

    Quoted cells may contain the delimiter, and padding after a closing quote
    is tolerated. Unbalanced quotes raise RowParseError.
    """

    text = raw_line.rstrip("\r\n")
    try:
        rows = _read(text, delimiter, strict=True)
    except csv.Error as exc:
        # Exports pad quoted cells ('"Acme, Inc" ,'); with balanced quotes the
        # lenient reader gives the same cells once they are stripped.
        if text.count('"') % 2:
            raise RowParseError(line_number=line_number, reason=f"Unbalanced quoting: {exc}.") from exc
        rows = _read(text, delimiter, strict=False)

    if not rows:
        return []
    return [cell.strip() for cell in rows[0]]


def parse_row(
    raw_line: str,
    expected_columns: Sequence[str],
    line_number: int,
    *,
    delimiter: str = ",",
) -> RawRow:
    """
    Parse one data line against the header columns.

    Empty cells are kept as empty strings; only a column-count mismatch or
    broken quoting fails the row.
    """

    cells = split_line(raw_line, delimiter=delimiter, line_number=line_number)
    if len(cells) != len(expected_columns):
        raise RowParseError(
            line_number=line_number,
            reason=f"Expected {len(expected_columns)} columns but found {len(cells)}.",
        )

    values: dict[str, str] = {}
    for column, cell in zip(expected_columns, cells):
        # Repeated header names keep the first column's value.
        values.setdefault(column, cell)
    return RawRow(values=values, line_number=line_number)


def locate_header(
    lines: Sequence[str],
    schema: ProcessorSchema,
    *,
    limit: int,
) -> tuple[int, list[str]] | None:
    """
    Find the header row among the first ``limit`` lines.

    The header is the first line whose columns include both the schema's
    merchant-id and revenue fields. Returns ``(index, columns)`` or None.
    """

    required = {
        normalize_column_name(schema.merchant_id_field),
        normalize_column_name(schema.revenue_field),
    }
    for index, line in enumerate(lines[: max(0, limit)]):
        if not line.strip():
            continue
        try:
            columns = split_line(line, delimiter=schema.delimiter, line_number=index + 1)
        except RowParseError:
            continue
        normalized = {normalize_column_name(column) for column in columns}
        if required <= normalized:
            return index, columns
    return None
