"""
Exception handling for the core module.

Request-level problems are raised as aiohttp exceptions (QueryException) so the
web layer turns them into JSON error responses. Failures of a single query are
SelectError subclasses: they end that query only and are reported in its
result slot.
"""

import json

import sentry_sdk
from aiohttp import web


class QueryException(web.HTTPException):
    """Re-raise a request-level error as aiohttp exception"""

    def __init__(self, status, error_code, title, detail) -> None:
        self.status_code = status
        error_body = {"errors": [{"code": error_code, "title": title, "detail": detail}]}
        super().__init__(content_type="application/json", text=json.dumps(error_body))


class SelectError(Exception):
    """Terminal failure of one query."""

    status = 500
    code = "select_error"
    title = "Query error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"code": self.code, "title": self.title, "detail": self.detail}


class InvalidQuery(SelectError):
    """The query descriptor is malformed or incomplete."""

    status = 400
    code = "invalid_query"
    title = "Invalid query"


class RemoteQueryUnreachable(SelectError):
    """The select call could not be established."""

    status = 502
    code = "remote_query_unreachable"
    title = "Remote query unreachable"


class RemoteQueryFailed(SelectError):
    """The event stream reported an error mid-execution."""

    status = 502
    code = "remote_query_failed"
    title = "Remote query failed"


class MalformedResult(SelectError):
    status = 502
    code = "malformed_result"
    title = "Malformed result"


class TimeFieldUnavailable(SelectError):
    status = 422
    code = "time_field_unavailable"
    title = "Time field unavailable"


class QueryCancelled(SelectError):
    status = 504
    code = "query_cancelled"
    title = "Query cancelled"


def report_exception(error: SelectError, ref_id: str | None = None) -> str | None:
    """Send a query failure to Sentry, if configured, and return the event id."""
    if not sentry_sdk.get_client().is_active():
        return None
    with sentry_sdk.new_scope() as scope:
        sentry_tags: dict = {
            "status": error.status,
            "code": error.code,
            "title": error.title,
        }
        if ref_id:
            sentry_tags["ref_id"] = ref_id
        scope.set_tags(sentry_tags)
        return sentry_sdk.capture_exception(error)
