"""Bucket management endpoints."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from . import __version__
from .constants import Endpoints, Headers
from .exceptions import FailureReason, StorageError
from .http import StorageTransports, merge_headers, request_json
from .models import Bucket, BucketUpsertOptions, ClientOptions, GenericResponse


LOGGER = logging.getLogger(__name__)

CLIENT_INFO = f"storage-client-py/{__version__}"


class StorageBucketApi:
    """Create, inspect and delete buckets."""

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        *,
        options: Optional[ClientOptions] = None,
        transports: Optional[StorageTransports] = None,
        get_headers: Optional[Callable[[], Dict[str, str]]] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.options = options or (transports.options if transports is not None else ClientOptions())
        self.transports = transports or StorageTransports(self.options)
        self.get_headers = get_headers
        self._initial_headers = dict(headers or {})
        self._headers = dict(self._initial_headers)

    @property
    def headers(self) -> Dict[str, str]:
        """Current request headers; ``get_headers`` output overrides the initial set."""

        if self.get_headers is not None:
            self._headers = dict(self.get_headers() or {})
        merged = merge_headers(self._initial_headers, self._headers)
        if not any(name.lower() == Headers.CLIENT_INFO.lower() for name in merged):
            merged[Headers.CLIENT_INFO] = CLIENT_INFO
        return merged

    @headers.setter
    def headers(self, value: Dict[str, str]) -> None:
        self._headers = dict(value or {})

    async def aclose(self) -> None:
        await self.transports.aclose()

    async def _request(self, method: str, path: str, data: Optional[dict] = None):
        return await request_json(
            self.transports.request_client,
            method,
            f"{self.url}{path}",
            data=data,
            headers=self.headers,
        )

    async def list_buckets(self) -> List[Bucket]:
        payload = await self._request("GET", Endpoints.BUCKET)
        return [Bucket.model_validate(item) for item in payload or []]

    async def get_bucket(self, bucket_id: str) -> Optional[Bucket]:
        """Return the bucket, or ``None`` when the server reports it does not exist."""

        try:
            payload = await self._request("GET", f"{Endpoints.BUCKET}/{bucket_id}")
        except StorageError as exc:
            if exc.reason == FailureReason.NOT_FOUND:
                LOGGER.debug("Bucket %s not found", bucket_id)
                return None
            raise
        if payload is None:
            return None
        return Bucket.model_validate(payload)

    async def create_bucket(self, bucket_id: str, options: Optional[BucketUpsertOptions] = None) -> str:
        options = options or BucketUpsertOptions()
        bucket = Bucket(
            id=bucket_id,
            name=bucket_id,
            public=options.public,
            file_size_limit=options.file_size_limit,
            allowed_mimes=options.allowed_mimes,
        )
        payload = await self._request("POST", Endpoints.BUCKET, bucket.to_payload())
        LOGGER.info("Created bucket %s", bucket_id)
        if isinstance(payload, dict) and payload.get("name"):
            return payload["name"]
        return bucket_id

    async def update_bucket(self, bucket_id: str, options: Optional[BucketUpsertOptions] = None) -> GenericResponse:
        options = options or BucketUpsertOptions()
        bucket = Bucket(
            id=bucket_id,
            public=options.public,
            file_size_limit=options.file_size_limit,
            allowed_mimes=options.allowed_mimes,
        )
        payload = await self._request("PUT", f"{Endpoints.BUCKET}/{bucket_id}", bucket.to_payload())
        return GenericResponse.model_validate(payload or {})

    async def empty_bucket(self, bucket_id: str) -> GenericResponse:
        payload = await self._request("POST", f"{Endpoints.BUCKET}/{bucket_id}/empty")
        return GenericResponse.model_validate(payload or {})

    async def delete_bucket(self, bucket_id: str) -> GenericResponse:
        payload = await self._request("DELETE", f"{Endpoints.BUCKET}/{bucket_id}")
        LOGGER.info("Deleted bucket %s", bucket_id)
        return GenericResponse.model_validate(payload or {})
