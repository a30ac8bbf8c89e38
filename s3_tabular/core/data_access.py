"""
Data access layer for the core module.

Runs S3 Select requests with boto3 and collects the streamed records into a
single JSON array payload.
"""

import asyncio
import logging
import threading
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .. import config
from .exceptions import QueryCancelled, RemoteQueryFailed, RemoteQueryUnreachable
from .models import DataSourceSettings, RemoteQueryRequest

logger = logging.getLogger(__name__)


def _session(settings: DataSourceSettings):
    return boto3.session.Session(region_name=settings.region)


class ResultPayload:
    """
    Concatenation of the record fragments of one select, framed as a JSON array.

    S3 Select emits records back to back, each followed by the "," record
    delimiter, and fragments may split a record anywhere.
    """

    def __init__(self):
        self._buffer = bytearray(b"[")

    def append(self, fragment: bytes) -> None:
        self._buffer.extend(fragment)

    def close(self) -> bytes:
        body = self._buffer.rstrip()
        if body.endswith(b","):
            body[-1:] = b"]"
        else:
            body.extend(b"]")
        return bytes(body)


class SelectClient:
    """Handles S3 Select calls for one data source."""

    def __init__(self, s3_client: Any):
        self.s3 = s3_client

    @classmethod
    def from_settings(cls, settings: DataSourceSettings) -> "SelectClient":
        kwargs = {}
        if settings.has_static_credentials:
            kwargs["aws_access_key_id"] = settings.access_key
            kwargs["aws_secret_access_key"] = settings.secret_key
        try:
            return cls(_session(settings).client("s3", **kwargs))
        except BotoCoreError as e:
            raise RemoteQueryUnreachable(f"Unable to create S3 client: {e}") from e

    async def select(self, request: RemoteQueryRequest) -> bytes:
        """
        Run a select request and return its records as a JSON array.

        The blocking boto3 call runs in a worker thread. If the awaiting task
        is cancelled, the worker stops at the next event and closes the stream.

        Raises:
            RemoteQueryUnreachable: If the select call cannot be made
            RemoteQueryFailed: If the event stream reports an error
            QueryCancelled: If the select was cancelled while streaming
        """
        cancelled = threading.Event()
        try:
            return await asyncio.to_thread(self.select_sync, request, cancelled)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    def select_sync(
        self, request: RemoteQueryRequest, cancelled: threading.Event | None = None
    ) -> bytes:
        try:
            response = self.s3.select_object_content(**request.to_params())
        except (BotoCoreError, ClientError) as e:
            logger.warning("Select on s3://%s/%s failed: %s", request.bucket, request.key, e)
            raise RemoteQueryUnreachable(str(e)) from e

        event_stream = response["Payload"]
        try:
            return self._collect(event_stream, cancelled)
        finally:
            event_stream.close()
            logger.debug("Released event stream for s3://%s/%s", request.bucket, request.key)

    def _collect(self, event_stream, cancelled: threading.Event | None) -> bytes:
        payload = ResultPayload()
        try:
            for event in event_stream:
                if cancelled is not None and cancelled.is_set():
                    raise QueryCancelled("Select cancelled while reading the event stream")
                if "Records" in event:
                    payload.append(event["Records"]["Payload"])
                elif "Stats" in event:
                    # query cost, logged only
                    logger.info(
                        "%s stats: %s",
                        config.STATS_OPERATION_TAG,
                        event["Stats"].get("Details"),
                        extra={"operation": config.STATS_OPERATION_TAG},
                    )
        except (BotoCoreError, ClientError) as e:
            logger.warning("Event stream error: %s", e)
            raise RemoteQueryFailed(str(e)) from e
        return payload.close()

    def check_bucket(self, bucket: str) -> None:
        """Make sure the bucket can be listed with these settings."""
        self.s3.list_objects_v2(Bucket=bucket, MaxKeys=1)
