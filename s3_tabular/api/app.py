"""
Main API application factory.

This module creates the aiohttp application with all routes and middleware.
"""

import logging
import os
from datetime import datetime, timezone

import sentry_sdk
from aiohttp import web

from s3_tabular import config
from s3_tabular.core.cors import cors_middleware
from s3_tabular.core.health import check_health
from s3_tabular.core.sentry import get_sentry_kwargs
from s3_tabular.core.version import get_app_version

from .routes.queries import routes as query_routes


async def health_handler(request):
    """Handle health check requests."""
    return await check_health(request)


async def app_factory():
    """Create and configure the aiohttp application."""
    sentry_sdk.init(**get_sentry_kwargs())

    async def on_startup(app):
        app["start_time"] = datetime.now(timezone.utc)
        app["app_version"] = await get_app_version()

    app = web.Application(middlewares=[cors_middleware])

    app.add_routes(query_routes)
    app.router.add_get("/health/", health_handler)

    app.on_startup.append(on_startup)

    return app


def run():
    """Run the application."""
    logging.basicConfig(level=config.LOG_LEVEL)
    web.run_app(app_factory(), path=os.environ.get("S3TABULAR_APP_SOCKET_PATH"))
