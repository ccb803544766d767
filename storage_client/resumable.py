"""Resumable uploads over the TUS create-then-patch handshake.

An upload call runs these steps:

1. rewind the source to offset 0 (every call sends the whole payload, so
   the source must be seekable), reading it in a worker thread,
2. ``POST`` to the resumable endpoint with the total length and the object
   metadata; the ``Location`` header of the reply is the session URL,
3. ``PATCH`` the session URL with consecutive chunks of at most
   ``chunk_size`` bytes, reporting progress after each one,
4. return the last response, or raise :class:`StorageError` when the server
   rejects a chunk.

With an :class:`UploadUrlCache` and a ``cache_key`` the session URL from a
previous (interrupted) call is reused, which skips step 2. Already
acknowledged bytes are still resent; there is no byte-range resume.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Mapping, Optional

import httpx

from .config import UPLOAD_CHUNK_SIZE
from .constants import Tus
from .exceptions import StorageArgumentError, StorageError, TransferCancelledError
from .http import merge_headers, raise_for_storage_error, send_cancellable
from .transfer import (
    ProgressCallback,
    UploadSource,
    is_seekable,
    open_source,
    remaining_length,
    report_progress,
)
from .upload_cache import UploadUrlCache


LOGGER = logging.getLogger(__name__)

# Statuses meaning a cached session URL is no longer usable
_STALE_SESSION_STATUSES = frozenset({404, 409, 410})


@dataclass
class ResumableUploadSession:
    file_location: str
    total_size: int
    bucket_name: str
    object_name: str
    content_type: str
    uploaded_size: int = 0
    custom_metadata: Dict[str, str] = field(default_factory=dict)


def encode_upload_metadata(metadata: Mapping[str, Optional[str]]) -> str:
    """Render the ``Upload-Metadata`` header: ``key base64(value)`` pairs joined by commas."""

    pairs = []
    for key, value in metadata.items():
        if value is None:
            continue
        encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
        pairs.append(f"{key} {encoded}")
    return ",".join(pairs)


class ResumableUploader:
    """Drive resumable uploads against a TUS endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        *,
        cache: Optional[UploadUrlCache] = None,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise StorageArgumentError("chunk_size must be positive")
        self._client = client
        self.endpoint = endpoint
        self.cache = cache
        self.chunk_size = chunk_size

    async def upload(
        self,
        source: UploadSource,
        *,
        bucket_name: str,
        object_name: str,
        content_type: str,
        cache_control: Optional[str] = None,
        custom_metadata: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        cache_key: Optional[str] = None,
    ) -> httpx.Response:
        """Upload ``source`` (path, bytes or binary stream) and return the final response."""

        stream, owned = open_source(source)
        try:
            if not is_seekable(stream):
                raise StorageArgumentError("resumable uploads need a seekable source of known length")
            if stream.tell() != 0:
                stream.seek(0)
            session = ResumableUploadSession(
                file_location="",
                total_size=remaining_length(stream),
                bucket_name=bucket_name,
                object_name=object_name,
                content_type=content_type,
                custom_metadata=dict(custom_metadata or {}),
            )
            return await self._run(
                session,
                stream,
                cache_control=cache_control,
                headers=headers or {},
                on_progress=on_progress,
                cancel_event=cancel_event,
                cache_key=cache_key,
            )
        finally:
            if owned:
                stream.close()

    async def _run(
        self,
        session: ResumableUploadSession,
        stream: BinaryIO,
        *,
        cache_control: Optional[str],
        headers: Mapping[str, str],
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
        cache_key: Optional[str],
    ) -> httpx.Response:
        use_cache = self.cache is not None and bool(cache_key and cache_key.strip())
        cached_location: Optional[str] = None
        if use_cache:
            _, cached_location = self.cache.try_get(cache_key)

        if cached_location and session.total_size > 0:
            LOGGER.info("Resuming upload of %s/%s with cached session", session.bucket_name, session.object_name)
            session.file_location = cached_location
            try:
                response = await self._patch_all(session, stream, headers, on_progress, cancel_event)
            except StorageError as exc:
                status = exc.response.status_code if exc.response is not None else exc.status_code
                if session.uploaded_size or status not in _STALE_SESSION_STATUSES:
                    raise
                LOGGER.info("Cached upload session for %s is gone (%s); starting a new one", cache_key, status)
                self.cache.remove(cache_key)
                stream.seek(0)
                response = await self._start_and_patch(
                    session, stream, cache_control, headers, on_progress, cancel_event, cache_key if use_cache else None
                )
        else:
            response = await self._start_and_patch(
                session, stream, cache_control, headers, on_progress, cancel_event, cache_key if use_cache else None
            )

        if use_cache:
            self.cache.remove(cache_key)
        LOGGER.info("Uploaded %s bytes to %s/%s", session.uploaded_size, session.bucket_name, session.object_name)
        return response

    async def _start_and_patch(
        self,
        session: ResumableUploadSession,
        stream: BinaryIO,
        cache_control: Optional[str],
        headers: Mapping[str, str],
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
        cache_key: Optional[str],
    ) -> httpx.Response:
        create_response = await self._create(session, cache_control, headers, cancel_event)
        if cache_key:
            self.cache.set(cache_key, session.file_location)
        if session.total_size == 0:
            report_progress(on_progress, 0, 0)
            return create_response
        return await self._patch_all(session, stream, headers, on_progress, cancel_event)

    async def _create(
        self,
        session: ResumableUploadSession,
        cache_control: Optional[str],
        headers: Mapping[str, str],
        cancel_event: Optional[asyncio.Event],
    ) -> httpx.Response:
        metadata: Dict[str, Optional[str]] = {
            "bucketName": session.bucket_name,
            "objectName": session.object_name,
            "contentType": session.content_type,
            "cacheControl": cache_control,
        }
        if session.custom_metadata:
            metadata["metadata"] = json.dumps(session.custom_metadata)

        create_headers = merge_headers(
            headers,
            {
                Tus.RESUMABLE: Tus.VERSION,
                Tus.UPLOAD_LENGTH: str(session.total_size),
                Tus.UPLOAD_METADATA: encode_upload_metadata(metadata),
            },
        )
        response = await send_cancellable(
            self._client.post(self.endpoint, content=b"", headers=create_headers),
            cancel_event,
        )
        await raise_for_storage_error(response)

        location = response.headers.get("location")
        if not location:
            raise StorageError(
                "Resumable upload endpoint did not return a session location",
                status_code=response.status_code,
                content=response.text,
                response=response,
            )
        session.file_location = str(httpx.URL(self.endpoint).join(location))
        LOGGER.debug("Created upload session %s (%s bytes)", session.file_location, session.total_size)
        return response

    async def _patch_all(
        self,
        session: ResumableUploadSession,
        stream: BinaryIO,
        headers: Mapping[str, str],
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> httpx.Response:
        response: Optional[httpx.Response] = None
        while session.uploaded_size < session.total_size:
            if cancel_event is not None and cancel_event.is_set():
                raise TransferCancelledError(
                    f"Upload of {session.object_name} cancelled at {session.uploaded_size}/{session.total_size} bytes"
                )

            to_read = min(self.chunk_size, session.total_size - session.uploaded_size)
            chunk = await asyncio.to_thread(stream.read, to_read)
            if not chunk:
                raise StorageArgumentError(
                    f"Upload source ended at {session.uploaded_size} of {session.total_size} bytes"
                )

            patch_headers = merge_headers(
                headers,
                {
                    Tus.RESUMABLE: Tus.VERSION,
                    Tus.UPLOAD_OFFSET: str(session.uploaded_size),
                    "Content-Type": Tus.OFFSET_CONTENT_TYPE,
                },
            )
            response = await send_cancellable(
                self._client.patch(session.file_location, content=chunk, headers=patch_headers),
                cancel_event,
            )
            await raise_for_storage_error(response)

            expected = session.uploaded_size + len(chunk)
            acknowledged = _acknowledged_offset(response, expected)
            if acknowledged <= session.uploaded_size:
                raise StorageError(
                    f"Upload offset did not advance past {session.uploaded_size}",
                    status_code=response.status_code,
                    content=response.text,
                    response=response,
                )
            session.uploaded_size = acknowledged
            if session.uploaded_size != expected:
                stream.seek(session.uploaded_size)
            report_progress(on_progress, session.uploaded_size, session.total_size)

        if response is None:
            raise StorageArgumentError("Nothing to upload")
        return response


def _acknowledged_offset(response: httpx.Response, fallback: int) -> int:
    raw = response.headers.get(Tus.UPLOAD_OFFSET)
    if raw is None:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback
