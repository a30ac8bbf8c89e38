"""
Rebuilding of a time axis for bucketed series.

Some JSON objects store a series sampled at a fixed interval with a single
origin timestamp instead of one timestamp per row. The time request fetches
that origin, and the axis is derived from it and the bucket width.
"""

import logging
from datetime import datetime, timedelta

from .. import config
from .data_access import SelectClient
from .exceptions import MalformedResult, TimeFieldUnavailable
from .materialize import parse_rows
from .models import ColumnKind, QueryDescriptor, RemoteQueryRequest, ResultTable, TypedColumn
from .temporal import parse_timestamp

logger = logging.getLogger(__name__)

# name S3 Select gives to an unaliased expression
POSITIONAL_COLUMN = "_1"


def build_time_axis(base: datetime, bucket_ns: int, row_count: int) -> list[datetime]:
    """
    Timestamps base + i * bucket for i in [0, row_count), truncated to microseconds.

    Raises:
        MalformedResult: If the axis runs past the supported date range
    """
    try:
        return [base + timedelta(microseconds=(i * bucket_ns) // 1000) for i in range(row_count)]
    except OverflowError as e:
        raise MalformedResult(
            f"Time axis from {base.isoformat()} every {bucket_ns}ns overflows: {e}"
        ) from e


async def append_time_column(
    client: SelectClient,
    request: RemoteQueryRequest,
    query: QueryDescriptor,
    table: ResultTable,
) -> ResultTable:
    """
    Fetch the series origin and append a synthetic time column to the table.

    Raises:
        TimeFieldUnavailable: If the time request returned no row
        MalformedResult: If the origin is not a timestamp
    """
    row_set = parse_rows(await client.select(request))
    if not len(row_set) or not row_set.columns:
        raise TimeFieldUnavailable("Unable to fetch time field")

    column = row_set.columns[0]
    value = row_set.rows[0].get(column)
    base = parse_timestamp(value, query.json_time_month_first) if value else None
    if base is None:
        raise MalformedResult(f"Time field value is not a timestamp: {value!r}")

    if column == POSITIONAL_COLUMN:
        column = config.TIME_COLUMN_NAME
    logger.debug(
        "Rebuilding %s from %s every %sns over %s rows",
        column,
        base.isoformat(),
        query.json_time_bucket,
        table.row_count,
    )
    table.add_column(
        TypedColumn(
            name=column,
            kind=ColumnKind.TIME,
            values=build_time_axis(base, query.json_time_bucket, table.row_count),
        )
    )
    return table
