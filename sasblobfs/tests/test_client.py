import asyncio
import hashlib
import io
from datetime import datetime

import aiohttp
import pytest
from azure.core.exceptions import ResourceNotFoundError, ServiceRequestError

from sasblobfs import BlobClient, BlobStatus
from sasblobfs.errors import REDACTED
from sasblobfs.tests.constants import (
    ACCOUNT_NAME,
    ACCOUNT_URL,
    CONTAINER,
    SAS_TOKEN,
    data,
)


def test_blob_url(client):
    assert client.account_url == ACCOUNT_URL
    assert client.blob_url("root/rfile.txt") == (
        f"{ACCOUNT_URL}/{CONTAINER}/root/rfile.txt?{SAS_TOKEN}"
    )
    assert SAS_TOKEN not in repr(client)


def test_account_url_override(service):
    emulator = "http://127.0.0.1:10000/devstoreaccount1"
    client = BlobClient(
        None, CONTAINER, "?" + SAS_TOKEN, transport=service, account_url=emulator
    )
    assert client.blob_url("a") == f"{emulator}/{CONTAINER}/a?{SAS_TOKEN}"


def test_account_required(service):
    with pytest.raises(ValueError):
        BlobClient(None, CONTAINER, SAS_TOKEN, transport=service)


@pytest.mark.asyncio
async def test_get(client, service):
    assert await client.get("top_file.txt") == data
    assert "Range" not in service.requests[-1].headers


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "start,end,expected,header",
    [
        (0, 5, b"01234", "bytes=0-4"),
        (5, 10, b"56789", "bytes=5-9"),
        (2, None, b"23456789", "bytes=2-"),
        (None, 3, b"012", "bytes=0-2"),
    ],
)
async def test_get_range(client, service, start, end, expected, header):
    assert await client.get("top_file.txt", start, end) == expected
    assert service.requests[-1].headers["Range"] == header


@pytest.mark.asyncio
async def test_stream(client):
    chunks = [chunk async for chunk in client.stream("top_file.txt", chunk_size=4)]
    assert chunks == [b"0123", b"4567", b"89"]


@pytest.mark.asyncio
async def test_stream_missing(client):
    with pytest.raises(ResourceNotFoundError):
        async for _ in client.stream("missing.txt"):
            pass


@pytest.mark.asyncio
async def test_get_properties(client, service):
    properties = await client.get_properties("top_file.txt")
    assert service.requests[-1].method == "HEAD"
    assert properties["name"] == "top_file.txt"
    assert properties["size"] == len(data)
    assert isinstance(properties["last_modified"], datetime)
    assert properties["last_modified"] == service.blobs[(CONTAINER, "top_file.txt")].last_modified
    assert properties["content_type"] == "application/octet-stream"


@pytest.mark.asyncio
async def test_get_properties_missing(client):
    with pytest.raises(ResourceNotFoundError) as e:
        await client.get_properties("missing.txt")
    assert e.value.status is BlobStatus.NOT_FOUND
    assert e.value.status_code == 404
    assert SAS_TOKEN not in str(e.value)


@pytest.mark.asyncio
async def test_delete(client, service):
    await client.delete("top_file.txt")
    assert service.requests[-1].method == "DELETE"
    assert (CONTAINER, "top_file.txt") not in service.blobs
    with pytest.raises(ResourceNotFoundError):
        await client.delete("top_file.txt")


@pytest.mark.asyncio
async def test_connection_error_is_redacted(client, mocker):
    url = client.blob_url("top_file.txt")
    mocker.patch.object(
        client.transport,
        "request",
        side_effect=aiohttp.ClientConnectionError(f"Cannot connect to {url}"),
    )
    with pytest.raises(ServiceRequestError) as e:
        await client.get("top_file.txt")
    assert e.value.status is BlobStatus.FAILED
    assert SAS_TOKEN not in str(e.value)
    assert REDACTED in str(e.value)


@pytest.mark.asyncio
async def test_client_shared_across_operations(client, service):
    contents = {f"k{i}": bytes([i]) * (i * 5) for i in range(1, 5)}
    await asyncio.gather(
        *[
            client.put(key, io.BytesIO(value), hashlib.md5(value).digest())
            for key, value in contents.items()
        ]
    )
    for key, value in contents.items():
        assert await client.get(key) == value


def test_account_name_used_for_url(service):
    client = BlobClient(ACCOUNT_NAME, CONTAINER, SAS_TOKEN, transport=service)
    assert client.account_url == ACCOUNT_URL
