import asyncio
from datetime import datetime, timezone

from aiohttp import web
from aiohttp.web_request import Request
from botocore.exceptions import BotoCoreError, ClientError

from .data_access import SelectClient
from .exceptions import SelectError
from .models import DataSourceSettings


async def check_health(request: Request):
    start_time = request.app["start_time"]
    current_time = datetime.now(timezone.utc)
    uptime_seconds = (current_time - start_time).total_seconds()
    return web.json_response(
        {"status": "ok", "version": request.app["app_version"], "uptime_seconds": uptime_seconds}
    )


async def check_data_source(settings: DataSourceSettings) -> dict:
    """List at most one object of the bucket to validate the settings."""
    try:
        client = SelectClient.from_settings(settings)
        await asyncio.to_thread(client.check_bucket, settings.bucket)
    except SelectError as e:
        return {"status": "error", "message": e.detail}
    except (BotoCoreError, ClientError) as e:
        return {"status": "error", "message": str(e)}
    return {"status": "ok", "message": "Data source is working"}
