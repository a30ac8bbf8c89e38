"""
Query-related route definitions.
"""

from aiohttp import web

from ..handlers.query_handlers import handle_data_source_health, handle_query

routes = web.RouteTableDef()


@routes.post(r"/api/query/", name="query")
async def query(request):
    """Run a batch of select queries."""
    return await handle_query(request)


@routes.post(r"/api/health/", name="datasource_health")
async def datasource_health(request):
    """Check data source settings against the bucket."""
    return await handle_data_source_health(request)
