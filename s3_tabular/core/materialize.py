"""
Schema inference for select results.

S3 Select answers with JSON records and no schema: CSV inputs yield strings
only, JSON inputs yield whatever the objects hold. Column types are therefore
sniffed from the text of every cell of a column, in a single pass, and the
columns are materialized accordingly.
"""

import json
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal

from .exceptions import MalformedResult
from .models import ColumnKind, ResultTable, TypedColumn

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INTEGER = re.compile(r"[+-]?\d+")
_FLOAT = re.compile(r"[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")


@dataclass
class RowSet:
    """Untyped rows, columns in order of first appearance."""

    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, str | None]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def column_values(self, name: str) -> list[str | None]:
        return [row.get(name) for row in self.rows]


def _to_text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, Decimal)):
        return str(value)
    return json.dumps(value, separators=(",", ":"), default=float)


def parse_rows(payload: bytes) -> RowSet:
    """
    Parse a JSON array payload into untyped rows.

    Numbers keep their textual form (floats are decoded as Decimal) so that
    "2.0" is still seen as fractional when the column gets classified.
    """
    try:
        records = json.loads(payload, parse_float=Decimal)
    except ValueError as e:
        raise MalformedResult(f"Result is not valid JSON: {e}") from e
    if not isinstance(records, list):
        raise MalformedResult("Result is not a list of records")

    row_set = RowSet()
    seen: set[str] = set()
    for record in records:
        if not isinstance(record, dict):
            raise MalformedResult(f"Record is not an object: {record!r}")
        row = {}
        for name, value in record.items():
            if name not in seen:
                seen.add(name)
                row_set.columns.append(name)
            row[name] = _to_text(value)
        row_set.rows.append(row)
    return row_set


def _is_int64(text: str) -> bool:
    if not _INTEGER.fullmatch(text) or len(text.lstrip("+-")) > 19:
        return False
    return INT64_MIN <= int(text) <= INT64_MAX


def _is_float(text: str) -> bool:
    return bool(_FLOAT.fullmatch(text)) and math.isfinite(float(text))


class ColumnSniffer:
    """
    Running type classification of one column.

    Unknown -> Integer -> Float while values stay numeric, any non-numeric
    value makes the column a String for good. Empty cells are ignored.
    """

    def __init__(self):
        self.kind: ColumnKind | None = None

    def observe(self, text: str | None) -> None:
        if not text or self.kind is ColumnKind.STRING:
            return
        if _is_int64(text):
            if self.kind is None:
                self.kind = ColumnKind.INTEGER
        elif _is_float(text):
            self.kind = ColumnKind.FLOAT
        else:
            self.kind = ColumnKind.STRING

    @property
    def result(self) -> ColumnKind:
        return self.kind or ColumnKind.STRING


def infer_kind(values: list[str | None]) -> ColumnKind:
    sniffer = ColumnSniffer()
    for value in values:
        sniffer.observe(value)
        if sniffer.kind is ColumnKind.STRING:
            break
    return sniffer.result


def materialize_column(name: str, values: list[str | None]) -> TypedColumn:
    kind = infer_kind(values)
    if kind is ColumnKind.INTEGER:
        typed = [int(v) if v else None for v in values]
    elif kind is ColumnKind.FLOAT:
        typed = [float(v) if v else None for v in values]
    else:
        typed = list(values)
    return TypedColumn(name=name, kind=kind, values=typed)


def materialize(row_set: RowSet) -> ResultTable:
    """Build a typed table with one column per key seen in the rows."""
    table = ResultTable(row_count=len(row_set))
    for name in row_set.columns:
        table.add_column(materialize_column(name, row_set.column_values(name)))
    return table


def build_table(payload: bytes) -> ResultTable:
    return materialize(parse_rows(payload))
