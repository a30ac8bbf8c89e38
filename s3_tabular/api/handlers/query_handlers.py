"""
Query-related request handlers.
"""

import asyncio
import json
import logging

from aiohttp import web

from s3_tabular import config
from s3_tabular.core.data_access import SelectClient
from s3_tabular.core.exceptions import (
    QueryCancelled,
    QueryException,
    SelectError,
    report_exception,
)
from s3_tabular.core.health import check_data_source
from s3_tabular.core.models import DataSourceSettings, QueryDescriptor
from s3_tabular.core.select import execute_query

logger = logging.getLogger(__name__)


async def _read_body(request) -> dict:
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        raise QueryException(400, None, "Invalid request body", f"Malformed JSON: {e}")
    if not isinstance(body, dict):
        raise QueryException(400, None, "Invalid request body", "Body must be a JSON object")
    return body


def _read_settings(body: dict) -> DataSourceSettings:
    try:
        return DataSourceSettings.from_dict(
            body.get("settings") or {}, body.get("secureSettings") or {}
        )
    except SelectError as e:
        raise QueryException(400, None, "Invalid data source settings", e.detail)


async def run_query(
    client: SelectClient, raw_query: dict, settings: DataSourceSettings, ref_id: str
) -> dict:
    """Run one query of a batch, its failure only ends up in its own slot."""
    try:
        query = QueryDescriptor.from_dict(raw_query)
        table = await asyncio.wait_for(
            execute_query(client, query, settings), timeout=config.QUERY_TIMEOUT
        )
    except asyncio.TimeoutError:
        error = QueryCancelled(f"Query did not complete within {config.QUERY_TIMEOUT}s")
    except SelectError as e:
        error = e
    else:
        return {"frames": [table.to_dict()]}

    logger.warning("Query %s failed: %s", ref_id, error.detail)
    if error.status >= 500:
        report_exception(error, ref_id)
    return {"error": error.to_dict()}


async def handle_query(request):
    """Handle a batch of select queries."""
    body = await _read_body(request)
    settings = _read_settings(body)

    queries = body.get("queries")
    if not isinstance(queries, list):
        raise QueryException(400, None, "Invalid request body", "queries must be a list")
    if len(queries) > config.MAX_QUERIES:
        raise QueryException(
            400,
            None,
            "Invalid request body",
            f"Number of queries exceeds allowed maximum: {config.MAX_QUERIES}",
        )

    try:
        client = SelectClient.from_settings(settings)
    except SelectError as e:
        raise QueryException(e.status, None, e.title, e.detail)

    results = {}
    for index, raw_query in enumerate(queries):
        ref_id = str(raw_query.get("refId", index)) if isinstance(raw_query, dict) else str(index)
        results[ref_id] = await run_query(client, raw_query, settings, ref_id)
    return web.json_response({"results": results})


async def handle_data_source_health(request):
    """Handle data source health check requests."""
    body = await _read_body(request)
    settings = _read_settings(body)
    return web.json_response(await check_data_source(settings))
