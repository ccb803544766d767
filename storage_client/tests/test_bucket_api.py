"""Bucket endpoints and client-level headers."""

import httpx
import pytest

from storage_client import BucketUpsertOptions, StorageArgumentError, StorageClient, StorageError
from storage_client.bucket_api import CLIENT_INFO
from storage_client.exceptions import FailureReason

from .conftest import BASE_URL, request_json


BUCKET_JSON = {
    "id": "docs",
    "name": "docs",
    "owner": "",
    "public": True,
    "file_size_limit": 1048576,
    "allowed_mime_types": ["image/png"],
    "created_at": "2024-01-02T03:04:05Z",
    "updated_at": "2024-01-02T03:04:05Z",
}


def test_client_requires_url() -> None:
    with pytest.raises(StorageArgumentError):
        StorageClient("")


@pytest.mark.asyncio
async def test_list_buckets(client, server) -> None:
    server.route("GET", "/bucket", json_body=[BUCKET_JSON, {"id": "tmp", "name": "tmp"}])

    buckets = await client.list_buckets()

    assert [b.id for b in buckets] == ["docs", "tmp"]
    assert buckets[0].public is True
    assert buckets[0].allowed_mimes == ["image/png"]
    assert buckets[0].file_size_limit == 1048576
    assert buckets[1].public is False


@pytest.mark.asyncio
async def test_requests_carry_auth_and_client_info(client, server) -> None:
    server.route("GET", "/bucket", json_body=[])

    await client.list_buckets()

    request = server.requests[0]
    assert request.headers["authorization"] == "Bearer service-key"
    assert request.headers["x-client-info"] == CLIENT_INFO


@pytest.mark.asyncio
async def test_get_headers_is_consulted_per_request(server) -> None:
    tokens = iter(["first", "second"])
    client = StorageClient(
        BASE_URL,
        transport=server.transport(),
        get_headers=lambda: {"Authorization": f"Bearer {next(tokens)}"},
    )
    server.route("GET", "/bucket", json_body=[])

    await client.list_buckets()
    await client.list_buckets()
    await client.aclose()

    assert [r.headers["authorization"] for r in server.requests] == ["Bearer first", "Bearer second"]


@pytest.mark.asyncio
async def test_explicit_client_info_is_kept(server) -> None:
    client = StorageClient(BASE_URL, {"x-client-info": "my-app/2.0"}, transport=server.transport())
    server.route("GET", "/bucket", json_body=[])

    await client.list_buckets()

    assert server.requests[0].headers.get_list("x-client-info") == ["my-app/2.0"]


@pytest.mark.asyncio
async def test_get_bucket(client, server) -> None:
    server.route("GET", "/bucket/docs", json_body=BUCKET_JSON)

    bucket = await client.get_bucket("docs")

    assert bucket.name == "docs"
    assert bucket.created_at.year == 2024


@pytest.mark.asyncio
async def test_get_missing_bucket_returns_none(client, server) -> None:
    assert await client.get_bucket("nope") is None


@pytest.mark.asyncio
async def test_get_bucket_other_errors_propagate(client, server) -> None:
    server.route("GET", "/bucket/docs", status=401, json_body={"message": "Unauthorized"})

    with pytest.raises(StorageError) as excinfo:
        await client.get_bucket("docs")

    assert excinfo.value.reason is FailureReason.NOT_AUTHORIZED


@pytest.mark.asyncio
async def test_create_bucket(client, server) -> None:
    server.route("POST", "/bucket", json_body={"name": "avatars"})

    name = await client.create_bucket(
        "avatars",
        BucketUpsertOptions(public=True, file_size_limit="5MB", allowed_mimes=["image/png", "image/jpeg"]),
    )

    assert name == "avatars"
    assert request_json(server.requests[0]) == {
        "id": "avatars",
        "name": "avatars",
        "public": True,
        "file_size_limit": "5MB",
        "allowed_mime_types": ["image/png", "image/jpeg"],
    }


@pytest.mark.asyncio
async def test_create_existing_bucket_is_classified(client, server) -> None:
    server.route(
        "POST",
        "/bucket",
        status=400,
        json_body={"statusCode": "409", "error": "Duplicate", "message": "The resource already exists"},
    )

    with pytest.raises(StorageError) as excinfo:
        await client.create_bucket("docs")

    assert excinfo.value.reason is FailureReason.ALREADY_EXISTS


@pytest.mark.asyncio
async def test_update_bucket(client, server) -> None:
    server.route("PUT", "/bucket/docs", json_body={"message": "Successfully updated"})

    result = await client.update_bucket("docs", BucketUpsertOptions(public=False))

    assert result.message == "Successfully updated"
    body = request_json(server.requests[0])
    assert body == {"id": "docs", "public": False, "file_size_limit": None}


@pytest.mark.asyncio
async def test_empty_and_delete_bucket(client, server) -> None:
    server.route("POST", "/bucket/docs/empty", json_body={"message": "Successfully emptied"})
    server.route("DELETE", "/bucket/docs", json_body={"message": "Successfully deleted"})

    emptied = await client.empty_bucket("docs")
    deleted = await client.delete_bucket("docs")

    assert emptied.message == "Successfully emptied"
    assert deleted.message == "Successfully deleted"
    assert [r.method for r in server.requests] == ["POST", "DELETE"]


@pytest.mark.asyncio
async def test_async_context_manager_closes_transports(server) -> None:
    async with StorageClient(BASE_URL, transport=server.transport()) as client:
        pass

    assert client.transports.request_client.is_closed
    assert client.transports.upload_client.is_closed
    assert client.transports.download_client.is_closed


@pytest.mark.asyncio
async def test_transports_use_separate_timeouts(server) -> None:
    from storage_client import ClientOptions

    client = StorageClient(
        BASE_URL,
        options=ClientOptions(http_request_timeout=5, http_upload_timeout=50, http_download_timeout=500),
        transport=server.transport(),
    )

    assert client.transports.request_client.timeout == httpx.Timeout(5)
    assert client.transports.upload_client.timeout == httpx.Timeout(50)
    assert client.transports.download_client.timeout == httpx.Timeout(500)
    await client.aclose()
