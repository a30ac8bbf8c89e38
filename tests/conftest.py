import json

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from s3_tabular.app import app_factory
from s3_tabular.core import data_access
from s3_tabular.core.data_access import SelectClient
from s3_tabular.core.models import DataSourceSettings

BUCKET = "sensor-data"
REGION = "eu-west-3"
SETTINGS_BODY = {
    "settings": {"bucket": BUCKET, "region": REGION, "accessKey": "AKIAEXAMPLE"},
    "secureSettings": {"secretKey": "secret"},
}


def records(*rows: dict, chunk_size: int | None = None) -> list[dict]:
    """Records events as S3 Select sends them, each record followed by ","."""
    body = b"".join(json.dumps(row).encode() + b"," for row in rows)
    if chunk_size is None:
        return [{"Records": {"Payload": body}}] if body else []
    return [
        {"Records": {"Payload": body[i : i + chunk_size]}} for i in range(0, len(body), chunk_size)
    ]


def stats(scanned: int = 100, processed: int = 100, returned: int = 10) -> dict:
    return {
        "Stats": {
            "Details": {
                "BytesScanned": scanned,
                "BytesProcessed": processed,
                "BytesReturned": returned,
            }
        }
    }


class FakeEventStream:
    def __init__(self, events: list[dict], error: Exception | None = None):
        self.events = events
        self.error = error
        self.closed = False

    def __iter__(self):
        yield from self.events
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


class FakeS3:
    """Stands in for a boto3 S3 client, answers selects in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[dict] = []
        self.streams: list[FakeEventStream] = []
        self.list_error: Exception | None = None
        self.listed: list[dict] = []

    def queue(self, response) -> None:
        self.responses.append(response)

    def select_object_content(self, **params):
        self.calls.append(params)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if not isinstance(response, FakeEventStream):
            response = FakeEventStream(response)
        self.streams.append(response)
        return {"Payload": response}

    def list_objects_v2(self, **params):
        self.listed.append(params)
        if self.list_error is not None:
            raise self.list_error
        return {"KeyCount": 0}


class FakeSession:
    def __init__(self, s3: FakeS3):
        self.s3 = s3
        self.client_kwargs: dict = {}

    def client(self, name, **kwargs):
        if name != "s3":
            raise ValueError(name)
        self.client_kwargs = kwargs
        return self.s3


@pytest.fixture
def settings():
    return DataSourceSettings(bucket=BUCKET, region=REGION)


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def select_client(fake_s3):
    return SelectClient(fake_s3)


@pytest.fixture
def fake_session(monkeypatch, fake_s3):
    session = FakeSession(fake_s3)
    monkeypatch.setattr(data_access, "_session", lambda settings: session)
    return session


@pytest_asyncio.fixture
async def fake_client(fake_session):
    app = await app_factory()
    async with TestClient(TestServer(app)) as client:
        yield client
