"""Shared fixtures: an in-process fake of the storage service behind ``httpx.MockTransport``."""

from __future__ import annotations

import asyncio
import inspect
import io
import json
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from storage_client import StorageClient, UploadUrlCache


BASE_URL = "https://storage.test/storage/v1"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStorageServer:
    """Records every request and answers the TUS endpoints; other routes use ``routes``."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.bodies: List[bytes] = []
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.uploads: Dict[str, bytearray] = {}
        self.upload_lengths: Dict[str, int] = {}
        self.patch_failure: Optional[httpx.Response] = None
        self.patch_delay: float = 0.0
        self._next_upload = 0

    def route(self, method: str, path: str, handler=None, *, json_body=None, status: int = 200):
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status, json=json_body)
        self.routes[(method, path)] = handler

    def requests_for(self, method: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.method == method]

    def _tus_create(self, request: httpx.Request) -> httpx.Response:
        self._next_upload += 1
        location = f"{BASE_URL}/upload/resumable/session-{self._next_upload}"
        self.uploads[location] = bytearray()
        self.upload_lengths[location] = int(request.headers["Upload-Length"])
        return httpx.Response(201, headers={"Location": location, "Tus-Resumable": "1.0.0"})

    def _tus_patch(self, request: httpx.Request, body: bytes) -> httpx.Response:
        if self.patch_failure is not None:
            return self.patch_failure
        location = str(request.url)
        if location not in self.uploads:
            return httpx.Response(404, text="Upload not found")
        data = self.uploads[location]
        if int(request.headers["Upload-Offset"]) != len(data):
            return httpx.Response(409, text="Upload-Offset conflict")
        data.extend(body)
        return httpx.Response(204, headers={"Upload-Offset": str(len(data)), "Tus-Resumable": "1.0.0"})

    async def handle(self, request: httpx.Request) -> httpx.Response:
        body = await request.aread()
        self.requests.append(request)
        self.bodies.append(body)
        path = request.url.path.replace("/storage/v1", "", 1)
        if request.method == "POST" and path == "/upload/resumable":
            return self._tus_create(request)
        if request.method == "PATCH" and path.startswith("/upload/resumable/"):
            if self.patch_delay:
                await asyncio.sleep(self.patch_delay)
            return self._tus_patch(request, body)
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(
                400,
                json={"statusCode": "404", "error": "not_found", "message": "Object not found"},
            )
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


class _ForwardOnlyReader(io.RawIOBase):
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._position = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, buffer) -> int:
        chunk = self._data[self._position:self._position + len(buffer)]
        buffer[:len(chunk)] = chunk
        self._position += len(chunk)
        return len(chunk)


def forward_only_stream(data: bytes) -> io.BufferedReader:
    """A binary stream that can only be read front to back, like a pipe."""

    return io.BufferedReader(_ForwardOnlyReader(data))


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def server() -> FakeStorageServer:
    return FakeStorageServer()


@pytest.fixture
def client(server: FakeStorageServer) -> StorageClient:
    return StorageClient(
        BASE_URL,
        {"Authorization": "Bearer service-key"},
        transport=server.transport(),
        upload_cache=UploadUrlCache(),
        chunk_size=4,
    )
