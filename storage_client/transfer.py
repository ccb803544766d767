"""Streaming uploads and downloads that report progress as a percentage."""

from __future__ import annotations

import asyncio
import io
import logging
import os
from typing import AsyncIterator, BinaryIO, Callable, Dict, Mapping, Optional, Tuple, Union

import httpx

from .constants import DOWNLOAD_BUFFER_SIZE, UPLOAD_BUFFER_SIZE
from .exceptions import StorageArgumentError
from .http import merge_headers, raise_for_storage_error, send_cancellable


LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
UploadSource = Union[str, "os.PathLike[str]", bytes, bytearray, memoryview, BinaryIO]


def report_progress(on_progress: Optional[ProgressCallback], done: int, total: int) -> None:
    if on_progress is None:
        return
    if total <= 0:
        on_progress(100.0)
        return
    on_progress(min(done / total * 100.0, 100.0))


def open_source(source: UploadSource) -> Tuple[BinaryIO, bool]:
    """Return a readable binary stream for ``source`` and whether the caller must close it."""

    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source)), True
    if isinstance(source, (str, os.PathLike)):
        return open(source, "rb"), True
    if not hasattr(source, "read"):
        raise StorageArgumentError(f"Unsupported upload source: {type(source).__name__}")
    return source, False


def is_seekable(stream: BinaryIO) -> bool:
    seekable = getattr(stream, "seekable", None)
    return bool(seekable is not None and seekable())


def remaining_length(stream: BinaryIO) -> Optional[int]:
    """Bytes left to read from the stream's current position, or ``None`` when it cannot seek."""

    if not is_seekable(stream):
        return None
    position = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(position)
    return end - position


def split_content_headers(headers: Mapping[str, str]) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Split headers into (content headers, request headers) on whether the name contains "content"."""

    content_headers: Dict[str, str] = {}
    request_headers: Dict[str, str] = {}
    for name, value in headers.items():
        if "content" in name.lower():
            content_headers[name] = value
        else:
            request_headers[name] = value
    return content_headers, request_headers


class ProgressStreamContent:
    """Request body that reads its source in fixed-size chunks and reports progress.

    ``headers`` holds the content headers (``content-length`` is filled in from
    the source); they are sent along with the request headers. A source that
    cannot seek has no known length: it is sent chunked and only the final
    100% event is reported.

    Reads run in a worker thread so file sources do not block the event loop.
    """

    def __init__(
        self,
        source: BinaryIO,
        *,
        length: Optional[int] = None,
        buffer_size: int = UPLOAD_BUFFER_SIZE,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        if buffer_size <= 0:
            raise StorageArgumentError("buffer_size must be positive")
        self._source = source
        self._buffer_size = buffer_size
        self.on_progress = on_progress
        self.length = remaining_length(source) if length is None else length
        self.headers: Dict[str, str] = {}
        if self.length is not None:
            self.headers["content-length"] = str(self.length)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        uploaded = 0
        while True:
            chunk = await asyncio.to_thread(self._source.read, self._buffer_size)
            if not chunk:
                break
            uploaded += len(chunk)
            yield chunk
            if self.length is not None:
                report_progress(self.on_progress, uploaded, self.length)
        if uploaded == 0 or self.length is None:
            report_progress(self.on_progress, 0, 0)


async def upload(
    client: httpx.AsyncClient,
    url: str,
    source: UploadSource,
    *,
    method: str = "POST",
    headers: Optional[Mapping[str, str]] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> httpx.Response:
    """Send ``source`` as the request body, reporting progress as it is read."""

    stream, owned = open_source(source)
    try:
        content = ProgressStreamContent(stream, on_progress=on_progress)
        content_headers, request_headers = split_content_headers(headers or {})
        content.headers.update(content_headers)
        request = client.build_request(
            method,
            url,
            content=content,
            headers=merge_headers(request_headers, content.headers),
        )
        LOGGER.debug("Uploading %s bytes to %s", content.length, url)
        response = await send_cancellable(client.send(request), cancel_event)
        await raise_for_storage_error(response)
        return response
    finally:
        if owned:
            stream.close()


def _content_length(response: httpx.Response) -> Optional[int]:
    raw = response.headers.get("content-length")
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


async def download_to_stream(
    client: httpx.AsyncClient,
    url: str,
    destination: BinaryIO,
    *,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, str]] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
    buffer_size: int = DOWNLOAD_BUFFER_SIZE,
) -> int:
    """Stream a GET response body into ``destination`` and return the bytes written.

    The body is only read once the status is known to be a success. Progress
    events need a ``content-length``; without one the copy runs silently.
    Progress counts raw bytes off the wire, so compressed bodies still line
    up with ``content-length``.
    """

    request = client.build_request("GET", url, headers=dict(headers or {}), params=params)
    response = await send_cancellable(client.send(request, stream=True), cancel_event)

    async def _copy() -> int:
        await raise_for_storage_error(response)
        total = _content_length(response)
        written = 0
        async for chunk in response.aiter_bytes(chunk_size=buffer_size):
            destination.write(chunk)
            written += len(chunk)
            if total is not None:
                report_progress(on_progress, response.num_bytes_downloaded, total)
        return written

    try:
        written = await send_cancellable(_copy(), cancel_event)
    finally:
        await response.aclose()
    LOGGER.debug("Downloaded %s bytes from %s", written, url)
    return written


async def download_bytes(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, str]] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> bytes:
    buffer = io.BytesIO()
    await download_to_stream(
        client,
        url,
        buffer,
        headers=headers,
        params=params,
        on_progress=on_progress,
        cancel_event=cancel_event,
    )
    return buffer.getvalue()
