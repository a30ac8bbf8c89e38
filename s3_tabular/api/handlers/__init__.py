"""
Request handlers for the API module.
"""

from .query_handlers import handle_data_source_health, handle_query

__all__ = [
    "handle_query",
    "handle_data_source_health",
]
