"""Object endpoints scoped to a single bucket."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import mimetypes
import os
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlencode

import httpx

from .constants import Endpoints, Headers
from .exceptions import StorageArgumentError, StorageError
from .http import StorageTransports, merge_headers, request_json
from .models import (
    CreatedUploadSignedUrlResponse,
    CreateSignedUrlResponse,
    CreateSignedUrlsResponse,
    DestinationOptions,
    DownloadOptions,
    FileObject,
    FileObjectV2,
    FileOptions,
    SearchOptions,
    TransformOptions,
    UploadSignedUrl,
)
from .resumable import ResumableUploader
from .transfer import ProgressCallback, UploadSource, download_bytes, download_to_stream, upload
from .upload_cache import UploadUrlCache


LOGGER = logging.getLogger(__name__)

DEFAULT_BINARY_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(name: Union[str, "os.PathLike[str]"]) -> str:
    content_type, _ = mimetypes.guess_type(os.fspath(name))
    return content_type or DEFAULT_BINARY_CONTENT_TYPE


def encode_metadata_header(metadata: Mapping[str, str]) -> str:
    """Base64 of the JSON metadata, as sent in ``x-metadata``."""

    return base64.b64encode(json.dumps(dict(metadata)).encode("utf-8")).decode("ascii")


def _with_query(url: str, query: Mapping[str, str]) -> str:
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(dict(query))}"


class StorageFileApi:
    """Upload, download, sign and manage objects in one bucket."""

    def __init__(
        self,
        url: str,
        headers: Dict[str, str],
        bucket_id: str,
        *,
        transports: StorageTransports,
        upload_cache: Optional[UploadUrlCache] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        if not bucket_id:
            raise StorageArgumentError("bucket_id is required")
        self.url = url.rstrip("/")
        self.headers = dict(headers)
        self.bucket_id = bucket_id
        self.transports = transports
        self.options = transports.options
        self.upload_cache = upload_cache
        uploader_kwargs = {"cache": upload_cache}
        if chunk_size is not None:
            uploader_kwargs["chunk_size"] = chunk_size
        self._uploader = ResumableUploader(
            transports.upload_client,
            f"{self.url}{Endpoints.UPLOAD_RESUMABLE}",
            **uploader_kwargs,
        )

    def _final_path(self, path: str) -> str:
        return f"{self.bucket_id}/{path.lstrip('/')}"

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------
    def get_public_url(
        self,
        path: str,
        transform: Optional[TransformOptions] = None,
        download: Optional[DownloadOptions] = None,
    ) -> str:
        query: Dict[str, str] = {}
        if download is not None:
            query.update(download.to_query())
        if transform is None:
            return _with_query(f"{self.url}{Endpoints.OBJECT_PUBLIC}/{self._final_path(path)}", query)
        query.update(transform.to_query())
        return _with_query(f"{self.url}{Endpoints.RENDER_IMAGE_PUBLIC}/{self._final_path(path)}", query)

    async def create_signed_url(
        self,
        path: str,
        expires_in: int,
        transform: Optional[TransformOptions] = None,
        download: Optional[DownloadOptions] = None,
    ) -> str:
        body: Dict[str, object] = {"expiresIn": expires_in}
        if transform is not None:
            body["transform"] = transform.to_body()

        payload = await request_json(
            self.transports.request_client,
            "POST",
            f"{self.url}{Endpoints.OBJECT_SIGN}/{self._final_path(path)}",
            data=body,
            headers=self.headers,
        )
        response = CreateSignedUrlResponse.model_validate(payload or {})
        if not response.signed_url:
            raise StorageError(f"Signed Url for {path} returned empty, do you have permission?")
        return _with_query(f"{self.url}{response.signed_url}", download.to_query() if download else {})

    async def create_signed_urls(
        self,
        paths: Sequence[str],
        expires_in: int,
        download: Optional[DownloadOptions] = None,
    ) -> List[CreateSignedUrlsResponse]:
        payload = await request_json(
            self.transports.request_client,
            "POST",
            f"{self.url}{Endpoints.OBJECT_SIGN}/{self.bucket_id}",
            data={"expiresIn": expires_in, "paths": list(paths)},
            headers=self.headers,
        )
        query = download.to_query() if download else {}
        results = [CreateSignedUrlsResponse.model_validate(item) for item in payload or []]
        for item in results:
            if not item.signed_url:
                raise StorageError(f"Signed Url for {item.path} returned empty, do you have permission?")
            item.signed_url = _with_query(f"{self.url}{item.signed_url}", query)
        return results

    async def create_upload_signed_url(self, path: str) -> UploadSignedUrl:
        payload = await request_json(
            self.transports.request_client,
            "POST",
            f"{self.url}{Endpoints.UPLOAD_SIGN}/{self._final_path(path)}",
            headers=self.headers,
        )
        response = CreatedUploadSignedUrlResponse.model_validate(payload or {})
        if not response.url or "token" not in response.url:
            raise StorageError(
                "Response did not return with expected data. Does this token have proper permission to generate a url?"
            )
        signed_url = f"{self.url}{response.url}"
        token = httpx.URL(signed_url).params.get("token")
        if not token:
            raise StorageError(f"Upload url for {path} did not carry a token")
        return UploadSignedUrl(signed_url=signed_url, token=token, key=path)

    # ------------------------------------------------------------------
    # Listing and object management
    # ------------------------------------------------------------------
    async def list(self, path: str = "", options: Optional[SearchOptions] = None) -> List[FileObject]:
        options = options or SearchOptions()
        payload = await request_json(
            self.transports.request_client,
            "POST",
            f"{self.url}{Endpoints.OBJECT_LIST}/{self.bucket_id}",
            data=options.to_body(path),
            headers=self.headers,
        )
        return [FileObject.model_validate(item) for item in payload or []]

    async def info(self, path: str) -> FileObjectV2:
        payload = await request_json(
            self.transports.request_client,
            "GET",
            f"{self.url}{Endpoints.OBJECT_INFO}/{self._final_path(path)}",
            headers=self.headers,
        )
        return FileObjectV2.model_validate(payload or {})

    async def move(self, from_path: str, to_path: str, options: Optional[DestinationOptions] = None) -> bool:
        await self._relocate(Endpoints.OBJECT_MOVE, from_path, to_path, options)
        LOGGER.info("Moved %s/%s to %s", self.bucket_id, from_path, to_path)
        return True

    async def copy(self, from_path: str, to_path: str, options: Optional[DestinationOptions] = None) -> bool:
        await self._relocate(Endpoints.OBJECT_COPY, from_path, to_path, options)
        LOGGER.info("Copied %s/%s to %s", self.bucket_id, from_path, to_path)
        return True

    async def _relocate(
        self,
        endpoint: str,
        from_path: str,
        to_path: str,
        options: Optional[DestinationOptions],
    ) -> None:
        body: Dict[str, Optional[str]] = {
            "bucketId": self.bucket_id,
            "sourceKey": from_path,
            "destinationKey": to_path,
        }
        if options is not None and options.destination_bucket:
            body["destinationBucket"] = options.destination_bucket
        await request_json(
            self.transports.request_client,
            "POST",
            f"{self.url}{endpoint}",
            data=body,
            headers=self.headers,
        )

    async def remove(self, paths: Union[str, Sequence[str]]) -> List[FileObject]:
        prefixes = [paths] if isinstance(paths, str) else list(paths)
        payload = await request_json(
            self.transports.request_client,
            "DELETE",
            f"{self.url}{Endpoints.OBJECT}/{self.bucket_id}",
            data={"prefixes": prefixes},
            headers=self.headers,
        )
        return [FileObject.model_validate(item) for item in payload or []]

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------
    def _upload_headers(self, options: FileOptions, *, include_content_type: bool = True) -> Dict[str, str]:
        extra: Dict[str, str] = {Headers.CACHE_CONTROL: f"max-age={options.cache_control}"}
        if include_content_type:
            extra[Headers.CONTENT_TYPE] = options.content_type
        if options.upsert:
            extra[Headers.UPSERT] = "true"
        if options.metadata:
            extra[Headers.METADATA] = encode_metadata_header(options.metadata)
        headers = merge_headers(self.headers, extra, options.headers)
        if options.duplex:
            headers[Headers.DUPLEX] = options.duplex.lower()
        return headers

    @staticmethod
    def _resolve_options(
        source: UploadSource,
        path: str,
        options: Optional[FileOptions],
        infer_content_type: bool,
    ) -> FileOptions:
        options = options or FileOptions()
        if infer_content_type:
            name = source if isinstance(source, (str, os.PathLike)) else path
            options = replace(options, content_type=guess_content_type(name))
        return options

    async def upload(
        self,
        source: UploadSource,
        path: str,
        options: Optional[FileOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        infer_content_type: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """Upload a local file path, bytes or binary stream to ``path``; returns ``bucket/path``."""

        options = self._resolve_options(source, path, options, infer_content_type)
        return await self._upload_or_update("POST", source, path, options, on_progress, cancel_event)

    async def update(
        self,
        source: UploadSource,
        path: str,
        options: Optional[FileOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        return await self._upload_or_update("PUT", source, path, options or FileOptions(), on_progress, cancel_event)

    async def _upload_or_update(
        self,
        method: str,
        source: UploadSource,
        path: str,
        options: FileOptions,
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> str:
        final_path = self._final_path(path)
        await upload(
            self.transports.upload_client,
            f"{self.url}{Endpoints.OBJECT}/{final_path}",
            source,
            method=method,
            headers=self._upload_headers(options),
            on_progress=on_progress,
            cancel_event=cancel_event,
        )
        LOGGER.info("Stored %s", final_path)
        return final_path

    async def upload_to_signed_url(
        self,
        source: UploadSource,
        signed_url: UploadSignedUrl,
        options: Optional[FileOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        infer_content_type: bool = True,
    ) -> str:
        options = self._resolve_options(source, signed_url.key, options, infer_content_type)
        headers = merge_headers(
            self._upload_headers(options),
            {Headers.AUTHORIZATION: f"Bearer {signed_url.token}"},
        )
        await upload(
            self.transports.upload_client,
            signed_url.signed_url,
            source,
            method="PUT",
            headers=headers,
            on_progress=on_progress,
        )
        return self._final_path(signed_url.key)

    async def upload_or_resume(
        self,
        source: UploadSource,
        path: str,
        options: Optional[FileOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        cache_key: Optional[str] = None,
    ) -> httpx.Response:
        """Upload through the resumable endpoint.

        When the client has an upload cache, the session URL is remembered under
        ``cache_key`` (``bucket/path`` by default) until the upload completes, so
        calling this again after an interruption skips creating a new session.
        """

        options = options or FileOptions()
        headers = self._upload_headers(options, include_content_type=False)
        headers.pop(Headers.METADATA, None)
        if cache_key is None and self.upload_cache is not None:
            cache_key = self._final_path(path)
        return await self._uploader.upload(
            source,
            bucket_name=self.bucket_id,
            object_name=path,
            content_type=options.content_type,
            cache_control=options.cache_control,
            custom_metadata=options.metadata,
            headers=headers,
            on_progress=on_progress,
            cancel_event=cancel_event,
            cache_key=cache_key,
        )

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------
    def _authenticated_url(self, path: str, transform: Optional[TransformOptions]) -> str:
        if transform is not None:
            return f"{self.url}{Endpoints.RENDER_IMAGE_AUTHENTICATED}/{self._final_path(path)}"
        return f"{self.url}{Endpoints.OBJECT}/{self._final_path(path)}"

    async def download(
        self,
        path: str,
        transform: Optional[TransformOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bytes:
        return await download_bytes(
            self.transports.download_client,
            self._authenticated_url(path, transform),
            headers=self.headers,
            params=transform.to_query() if transform else None,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

    async def download_to(
        self,
        path: str,
        local_path: Union[str, "os.PathLike[str]"],
        transform: Optional[TransformOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Path:
        return await self._download_file(
            self._authenticated_url(path, transform),
            local_path,
            headers=self.headers,
            params=transform.to_query() if transform else None,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

    async def download_public_file(
        self,
        path: str,
        local_path: Optional[Union[str, "os.PathLike[str]"]] = None,
        transform: Optional[TransformOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Union[bytes, Path]:
        """Fetch a public object; returns bytes, or the written path when ``local_path`` is given."""

        url = self.get_public_url(path, transform)
        if local_path is None:
            return await download_bytes(
                self.transports.download_client,
                url,
                on_progress=on_progress,
                cancel_event=cancel_event,
            )
        return await self._download_file(url, local_path, on_progress=on_progress, cancel_event=cancel_event)

    async def _download_file(
        self,
        url: str,
        local_path: Union[str, "os.PathLike[str]"],
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Path:
        destination = Path(local_path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        try:
            with partial.open("wb") as handle:
                await download_to_stream(
                    self.transports.download_client,
                    url,
                    handle,
                    headers=headers,
                    params=params,
                    on_progress=on_progress,
                    cancel_event=cancel_event,
                )
            os.replace(partial, destination)
        finally:
            if partial.exists():
                partial.unlink()
        return destination
