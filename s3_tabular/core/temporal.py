"""
Detection of time columns among string columns.

A string column is a time column when every non-empty value parses with one
and the same layout. Purely numeric dates are ambiguous ("01-02-2021"), so a
column is tried with day-before-month layouts first, then month-before-day.
"""

import logging
import re
import warnings
from datetime import datetime

import pandas as pd
from pandas.tseries.api import guess_datetime_format

from .models import ColumnKind, ResultTable, TypedColumn

logger = logging.getLogger(__name__)

# compact all-digit dates, anything else made of digits is an epoch
DIGIT_LAYOUTS = {8: "%Y%m%d", 14: "%Y%m%d%H%M%S"}

EPOCH_UNITS = ((10, "s"), (13, "ms"), (16, "us"))

FRACTION = re.compile(r"(:\d\d)\.(\d+)")


def _fits_order(layout: str, month_first: bool) -> bool:
    # year-first layouts are always year-month-day
    day, month = layout.find("%d"), layout.find("%m")
    if day < 0 or month < 0:
        return True
    year = max(layout.find("%Y"), layout.find("%y"))
    if 0 <= year < min(day, month):
        return month < day
    return (month < day) == month_first


def guess_layout(value: str, month_first: bool = False) -> str | None:
    """Return the layout of the value under the given day/month order, or None."""
    if value.isascii() and value.isdigit():
        return DIGIT_LAYOUTS.get(len(value))
    # the guesser only knows microseconds, %f parses up to nanoseconds
    sample = FRACTION.sub(lambda m: f"{m[1]}.{m[2][:6].ljust(6, '0')}", value)
    # the guesser swaps day and month when the preferred order cannot fit
    for dayfirst in (not month_first, month_first):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            layout = guess_datetime_format(sample, dayfirst=dayfirst)
        if layout is not None and _fits_order(layout, month_first):
            return layout
    return None


def infer_layout(values: list[str | None], month_first: bool = False) -> str | None:
    """Return the layout shared by every non-empty value, or None."""
    layout = None
    for value in values:
        if not value:
            continue
        guessed = guess_layout(value, month_first)
        if guessed is None:
            return None
        if layout is None:
            layout = guessed
        elif guessed != layout:
            return None
    return layout


def _to_datetime(stamp: pd.Timestamp) -> datetime:
    if stamp.tzinfo is None:
        stamp = stamp.tz_localize("UTC")
    return stamp.floor("us").to_pydatetime()


def parse_time(value: str, layout: str) -> datetime:
    """
    Parse a value with a known layout, naive values being UTC.

    Raises:
        ValueError: If the value does not match the layout or is out of range
    """
    return _to_datetime(pd.to_datetime(value, format=layout))


def classify_column(column: TypedColumn) -> TypedColumn:
    """Return the column as a time column if its values allow it, unchanged otherwise."""
    if column.kind is not ColumnKind.STRING:
        return column
    for month_first in (False, True):
        layout = infer_layout(column.values, month_first)
        if layout is None:
            continue
        try:
            # one value per cell, empty cells are null
            values = [parse_time(value, layout) if value else None for value in column.values]
        except (ValueError, OverflowError):
            continue
        logger.debug("Column %s read as time with layout %s", column.name, layout)
        return TypedColumn(name=column.name, kind=ColumnKind.TIME, values=values)
    return column


def classify_time_columns(table: ResultTable) -> ResultTable:
    table.columns = [classify_column(column) for column in table.columns]
    return table


def _from_epoch(digits: str) -> datetime | None:
    # seconds, milliseconds, microseconds or nanoseconds, told apart by length
    unit = next((unit for length, unit in EPOCH_UNITS if len(digits) <= length), "ns")
    try:
        return _to_datetime(pd.Timestamp(int(digits), unit=unit))
    except (ValueError, OverflowError):
        return None


def parse_timestamp(value: str, month_first: bool = False) -> datetime | None:
    """
    Parse a single timestamp of unknown layout.

    The preferred day/month order is tried first, then the other one. Digits
    are read as a compact date (yyyymmdd, yyyymmddhhmmss) or else as a Unix
    epoch. Returns None if nothing fits.
    """
    if value.isascii() and value.isdigit() and len(value) not in DIGIT_LAYOUTS:
        return _from_epoch(value)
    for hypothesis in (month_first, not month_first):
        layout = guess_layout(value, hypothesis)
        if layout is None:
            continue
        try:
            return parse_time(value, layout)
        except (ValueError, OverflowError):
            continue
    return None
