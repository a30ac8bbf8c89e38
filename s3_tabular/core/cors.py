from aiohttp import web


@web.middleware
async def cors_middleware(request, handler):
    """
    Middleware to handle CORS and the mandatory OPTIONS preflight.
    """
    if request.method == "OPTIONS":
        response = web.Response(status=204)
    else:
        response = await handler(request)

    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = (
        "Content-Type, Authorization, X-Requested-With"
    )
    response.headers["Access-Control-Expose-Headers"] = "*"

    return response
