"""
Core module for s3_tabular.

This module contains the core business logic separated from the API layer.
It compiles select requests, collects their streamed results and turns them
into typed tables.
"""

from .data_access import SelectClient
from .exceptions import QueryException, SelectError
from .models import DataSourceSettings, QueryDescriptor, ResultTable
from .query_builder import QueryBuilder
from .select import execute_query

__all__ = [
    "SelectClient",
    "QueryBuilder",
    "DataSourceSettings",
    "QueryDescriptor",
    "ResultTable",
    "QueryException",
    "SelectError",
    "execute_query",
]
