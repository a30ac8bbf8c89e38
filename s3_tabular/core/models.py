"""
Data models for the core module.

This module contains data classes and models used throughout the application.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any

from .exceptions import InvalidQuery


class Operation(Enum):
    """Operation requested by a query, decided once from its leading keyword."""

    SELECT = "SELECT"
    LIST = "LIST"
    UPLOAD = "UPLOAD"
    DELETE = "DELETE"

    @classmethod
    def from_expression(cls, expression: str) -> "Operation":
        for operation in (cls.LIST, cls.UPLOAD, cls.DELETE):
            if expression.startswith(operation.value):
                return operation
        return cls.SELECT


@dataclass(frozen=True)
class DataSourceSettings:
    """Bucket and credentials of one data source, built once per inbound call."""

    bucket: str
    region: str
    access_key: str | None = None
    secret_key: str | None = None

    @classmethod
    def from_dict(cls, settings: dict, secure_settings: dict | None = None) -> "DataSourceSettings":
        if not isinstance(settings, dict):
            raise InvalidQuery("Data source settings must be an object")
        bucket = settings.get("bucket")
        region = settings.get("region")
        if not bucket or not region:
            raise InvalidQuery("Data source settings require a bucket and a region")
        secret_key = (secure_settings or {}).get("secretKey")
        return cls(
            bucket=bucket,
            region=region,
            access_key=settings.get("accessKey") or None,
            secret_key=secret_key or None,
        )

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key and self.secret_key)


_STRING_FIELDS = {
    "path",
    "format",
    "compression",
    "query",
    "csv_comments",
    "csv_field_delimiter",
    "csv_file_header_info",
    "csv_quote_character",
    "csv_quote_escape_character",
    "csv_record_delimiter",
    "json_type",
    "json_time_field",
}
_BOOL_FIELDS = {"csv_allow_quoted_record_delimiter", "json_time_month_first"}


@dataclass(frozen=True)
class QueryDescriptor:
    """A query as sent by the host, field names match the wire format."""

    path: str | None = None
    format: str | None = None
    compression: str | None = None
    query: str | None = None

    csv_allow_quoted_record_delimiter: bool = False
    csv_comments: str | None = None
    csv_field_delimiter: str | None = None
    csv_file_header_info: str | None = None
    csv_quote_character: str | None = None
    csv_quote_escape_character: str | None = None
    csv_record_delimiter: str | None = None

    json_type: str | None = None
    json_time_field: str | None = None
    json_time_month_first: bool = False
    json_time_bucket: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "QueryDescriptor":
        """Build a descriptor from the host payload, unknown keys are ignored."""
        if not isinstance(data, dict):
            raise InvalidQuery("Query must be an object")
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            value = data[f.name]
            if f.name in _STRING_FIELDS and not isinstance(value, str):
                raise InvalidQuery(f"Field {f.name} must be a string")
            if f.name in _BOOL_FIELDS and not isinstance(value, bool):
                raise InvalidQuery(f"Field {f.name} must be a boolean")
            if f.name == "json_time_bucket":
                if isinstance(value, bool) or not isinstance(value, int):
                    raise InvalidQuery("Field json_time_bucket must be an integer")
            kwargs[f.name] = value
        return cls(**kwargs)

    @property
    def operation(self) -> Operation:
        return Operation.from_expression(self.query or "")


@dataclass(frozen=True)
class RemoteQueryRequest:
    """A compiled S3 Select request."""

    bucket: str
    key: str
    expression: str
    input_serialization: dict[str, Any]
    output_serialization: dict[str, Any] = field(
        default_factory=lambda: {"JSON": {"RecordDelimiter": ","}}
    )

    def to_params(self) -> dict[str, Any]:
        """Keyword arguments for boto3's select_object_content."""
        return {
            "Bucket": self.bucket,
            "Key": self.key,
            "ExpressionType": "SQL",
            "Expression": self.expression,
            "InputSerialization": self.input_serialization,
            "OutputSerialization": self.output_serialization,
        }


class ColumnKind(Enum):
    INTEGER = "int64"
    FLOAT = "float64"
    STRING = "string"
    TIME = "time"


@dataclass
class TypedColumn:
    name: str
    kind: ColumnKind
    values: list[Any]

    def __len__(self) -> int:
        return len(self.values)

    def to_dict(self) -> dict[str, Any]:
        if self.kind is ColumnKind.TIME:
            values = [v.isoformat() if isinstance(v, datetime) else None for v in self.values]
        else:
            values = list(self.values)
        return {"name": self.name, "type": self.kind.value, "values": values}


@dataclass
class ResultTable:
    """Typed columns of equal length, the unit returned for one query."""

    row_count: int
    columns: list[TypedColumn] = field(default_factory=list)
    name: str = "response"

    def add_column(self, column: TypedColumn) -> None:
        if len(column) != self.row_count:
            raise ValueError(
                f"Column {column.name} has {len(column)} values, expected {self.row_count}"
            )
        self.columns.append(column)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def column(self, name: str) -> TypedColumn:
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(name)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "fields": [column.to_dict() for column in self.columns]}
