"""
Query building logic for the core module.

Compiles a QueryDescriptor into the S3 Select requests needed to answer it: the
data request, and the time request used to rebuild a time axis for JSON
objects that store a bucketed series without per-row timestamps.
"""

from typing import Any

from .exceptions import InvalidQuery
from .models import DataSourceSettings, QueryDescriptor, RemoteQueryRequest


class QueryBuilder:
    """Handles S3 Select request building."""

    def __init__(self):
        # descriptor field -> CSVInput member, only sent when set
        self.CSV_OPTIONS = {
            "csv_comments": "Comments",
            "csv_field_delimiter": "FieldDelimiter",
            "csv_file_header_info": "FileHeaderInfo",
            "csv_quote_character": "QuoteCharacter",
            "csv_quote_escape_character": "QuoteEscapeCharacter",
            "csv_record_delimiter": "RecordDelimiter",
        }

    def _check_required(self, query: QueryDescriptor) -> None:
        if not query.path:
            raise InvalidQuery("Missing object path")
        if not query.query:
            raise InvalidQuery("Missing query expression")

    def _input_serialization(self, query: QueryDescriptor) -> dict[str, Any]:
        serialization: dict[str, Any] = {}
        if query.compression is not None:
            serialization["CompressionType"] = query.compression

        if query.format == "CSV":
            csv_input: dict[str, Any] = {
                "AllowQuotedRecordDelimiter": query.csv_allow_quoted_record_delimiter
            }
            for attribute, member in self.CSV_OPTIONS.items():
                value = getattr(query, attribute)
                if value is not None:
                    csv_input[member] = value
            serialization["CSV"] = csv_input
        elif query.format == "JSON":
            json_input: dict[str, Any] = {}
            if query.json_type is not None:
                json_input["Type"] = query.json_type
            serialization["JSON"] = json_input
        return serialization

    def build_select_params(
        self, query: QueryDescriptor, settings: DataSourceSettings
    ) -> RemoteQueryRequest:
        """Build the data request for a query."""
        self._check_required(query)
        return RemoteQueryRequest(
            bucket=settings.bucket,
            key=query.path,
            expression=query.query,
            input_serialization=self._input_serialization(query),
        )

    def build_time_params(
        self, query: QueryDescriptor, settings: DataSourceSettings
    ) -> RemoteQueryRequest | None:
        """
        Build the time request for a query, if it asks for a rebuilt time axis.

        Only applicable to JSON objects with a time field expression and a
        positive bucket width.
        """
        if query.format != "JSON" or not query.json_time_field or query.json_time_bucket <= 0:
            return None
        self._check_required(query)

        serialization: dict[str, Any] = {"JSON": {}}
        if query.json_type is not None:
            serialization["JSON"]["Type"] = query.json_type
        if query.compression is not None:
            serialization["CompressionType"] = query.compression

        return RemoteQueryRequest(
            bucket=settings.bucket,
            key=query.path,
            expression=query.json_time_field,
            input_serialization=serialization,
        )

    def build(
        self, query: QueryDescriptor, settings: DataSourceSettings
    ) -> tuple[RemoteQueryRequest, RemoteQueryRequest | None]:
        """Build both requests, failing before any remote call if the query is incomplete."""
        return self.build_select_params(query, settings), self.build_time_params(query, settings)
