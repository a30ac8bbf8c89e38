"""
Execution of one query, from descriptor to typed table.
"""

import logging

from .data_access import SelectClient
from .exceptions import InvalidQuery
from .materialize import build_table
from .models import DataSourceSettings, Operation, QueryDescriptor, ResultTable
from .query_builder import QueryBuilder
from .temporal import classify_time_columns
from .timeseries import append_time_column

logger = logging.getLogger(__name__)


async def execute_query(
    client: SelectClient, query: QueryDescriptor, settings: DataSourceSettings
) -> ResultTable:
    """
    Run a select query and return its result as a typed table.

    The time request, if any, only runs once the data request returned rows.
    """
    if query.operation is not Operation.SELECT:
        raise InvalidQuery(f"{query.operation.value} queries are not supported")

    select_params, time_params = QueryBuilder().build(query, settings)
    logger.debug("Selecting from s3://%s/%s", select_params.bucket, select_params.key)

    table = build_table(await client.select(select_params))
    classify_time_columns(table)

    if table.row_count > 0 and time_params is not None:
        await append_time_column(client, time_params, query, table)
    return table
