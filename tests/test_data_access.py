import asyncio
import json
import logging
import threading

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, EventStreamError

from s3_tabular.core.data_access import ResultPayload, SelectClient
from s3_tabular.core.exceptions import QueryCancelled, RemoteQueryFailed, RemoteQueryUnreachable
from s3_tabular.core.models import DataSourceSettings, RemoteQueryRequest

from .conftest import BUCKET, FakeEventStream, records, stats


REQUEST = RemoteQueryRequest(
    bucket=BUCKET,
    key="plant-a/2021.csv",
    expression="SELECT * FROM S3Object",
    input_serialization={"CSV": {"FileHeaderInfo": "USE"}},
)


def stream_error():
    return EventStreamError(
        {"Error": {"Code": "InternalError", "Message": "We encountered an internal error"}},
        "SelectObjectContent",
    )


@pytest.mark.asyncio
async def test_select_frames_records_as_array(fake_s3, select_client):
    fake_s3.queue(records({"a": "1", "b": "x"}, {"a": "2", "b": "y"}))
    payload = await select_client.select(REQUEST)
    assert json.loads(payload) == [{"a": "1", "b": "x"}, {"a": "2", "b": "y"}]
    assert fake_s3.calls == [REQUEST.to_params()]


@pytest.mark.asyncio
async def test_select_joins_split_fragments(fake_s3, select_client):
    rows = [{"name": f"sensor-{i}", "value": i * 1.5} for i in range(20)]
    fake_s3.queue(records(*rows, chunk_size=7))
    payload = await select_client.select(REQUEST)
    assert json.loads(payload) == rows


@pytest.mark.asyncio
async def test_select_empty_result(fake_s3, select_client):
    fake_s3.queue([stats(returned=0), {"End": {}}])
    assert await select_client.select(REQUEST) == b"[]"


@pytest.mark.asyncio
async def test_select_logs_stats(fake_s3, select_client, caplog):
    fake_s3.queue([*records({"a": "1"}), stats(scanned=2048), {"End": {}}])
    with caplog.at_level(logging.INFO, logger="s3_tabular.core.data_access"):
        await select_client.select(REQUEST)
    stats_records = [r for r in caplog.records if getattr(r, "operation", None) == "S3Select"]
    assert len(stats_records) == 1
    assert "2048" in stats_records[0].getMessage()


@pytest.mark.asyncio
async def test_select_stream_error(fake_s3, select_client):
    stream = FakeEventStream(records({"a": "1"}), error=stream_error())
    fake_s3.queue(stream)
    with pytest.raises(RemoteQueryFailed):
        await select_client.select(REQUEST)
    assert stream.closed


@pytest.mark.asyncio
async def test_select_closes_stream_on_success(fake_s3, select_client):
    fake_s3.queue(records({"a": "1"}))
    await select_client.select(REQUEST)
    assert all(stream.closed for stream in fake_s3.streams)


@pytest.mark.parametrize(
    "error",
    [
        ClientError({"Error": {"Code": "NoSuchKey", "Message": "Not found"}}, "SelectObjectContent"),
        EndpointConnectionError(endpoint_url="https://s3.eu-west-3.amazonaws.com"),
    ],
)
@pytest.mark.asyncio
async def test_select_unreachable(fake_s3, select_client, error):
    fake_s3.queue(error)
    with pytest.raises(RemoteQueryUnreachable):
        await select_client.select(REQUEST)
    assert fake_s3.streams == []


def test_select_sync_cancelled_closes_stream(fake_s3, select_client):
    cancelled = threading.Event()
    cancelled.set()
    fake_s3.queue(records({"a": "1"}))
    with pytest.raises(QueryCancelled):
        select_client.select_sync(REQUEST, cancelled)
    assert fake_s3.streams[0].closed


@pytest.mark.asyncio
async def test_select_cancellation_signals_worker(fake_s3, select_client):
    started = threading.Event()
    release = threading.Event()

    class SlowStream(FakeEventStream):
        def __iter__(self):
            started.set()
            release.wait(timeout=5)
            yield from self.events

    stream = SlowStream(records({"a": "1"}, {"a": "2"}))
    fake_s3.queue(stream)

    task = asyncio.create_task(select_client.select(REQUEST))
    await asyncio.to_thread(started.wait, 5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    release.set()
    for _ in range(100):
        if stream.closed:
            break
        await asyncio.sleep(0.01)
    assert stream.closed


def test_from_settings_uses_static_credentials(fake_session):
    settings = DataSourceSettings(
        bucket=BUCKET, region="eu-west-3", access_key="AKIAEXAMPLE", secret_key="secret"
    )
    client = SelectClient.from_settings(settings)
    assert client.s3 is fake_session.s3
    assert fake_session.client_kwargs == {
        "aws_access_key_id": "AKIAEXAMPLE",
        "aws_secret_access_key": "secret",
    }


def test_from_settings_without_secret_uses_default_chain(fake_session):
    settings = DataSourceSettings(bucket=BUCKET, region="eu-west-3", access_key="AKIAEXAMPLE")
    SelectClient.from_settings(settings)
    assert fake_session.client_kwargs == {}


@pytest.mark.parametrize(
    "fragments,expected",
    [
        ([], b"[]"),
        ([b'{"a":1},'], b'[{"a":1}]'),
        ([b'{"a":1},{"a"', b":2},\n"], b'[{"a":1},{"a":2}]'),
        ([b'{"a":1}'], b'[{"a":1}]'),
    ],
)
def test_result_payload(fragments, expected):
    payload = ResultPayload()
    for fragment in fragments:
        payload.append(fragment)
    assert payload.close() == expected
