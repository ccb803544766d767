"""Storage client entry point."""

from __future__ import annotations

from typing import Callable, Dict, Optional

import httpx

from .bucket_api import StorageBucketApi
from .config import STORAGE_KEY, STORAGE_URL
from .constants import Headers
from .exceptions import StorageArgumentError
from .file_api import StorageFileApi
from .http import StorageTransports
from .models import ClientOptions
from .upload_cache import UploadUrlCache


class StorageClient(StorageBucketApi):
    """Bucket operations plus :meth:`from_` for object operations in one bucket.

    The client owns its three HTTP transports and its resumable upload cache.
    Pass ``upload_cache`` to share one cache between several clients.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        *,
        options: Optional[ClientOptions] = None,
        upload_cache: Optional[UploadUrlCache] = None,
        get_headers: Optional[Callable[[], Dict[str, str]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        if not url:
            raise StorageArgumentError("Storage url is required")
        options = options or ClientOptions()
        super().__init__(
            url,
            headers,
            options=options,
            transports=StorageTransports(options, transport=transport),
            get_headers=get_headers,
        )
        self.upload_cache = upload_cache if upload_cache is not None else UploadUrlCache()
        self._chunk_size = chunk_size

    @classmethod
    def from_env(cls, **kwargs) -> "StorageClient":
        """Build a client from ``STORAGE_URL`` / ``STORAGE_KEY``."""

        if not STORAGE_URL:
            raise StorageArgumentError("STORAGE_URL is not configured")
        headers: Dict[str, str] = dict(kwargs.pop("headers", None) or {})
        if STORAGE_KEY:
            headers.setdefault(Headers.AUTHORIZATION, f"Bearer {STORAGE_KEY}")
            headers.setdefault("apikey", STORAGE_KEY)
        return cls(STORAGE_URL, headers, **kwargs)

    def from_(self, bucket_id: str) -> StorageFileApi:
        return StorageFileApi(
            self.url,
            self.headers,
            bucket_id,
            transports=self.transports,
            upload_cache=self.upload_cache,
            chunk_size=self._chunk_size,
        )

    async def __aenter__(self) -> "StorageClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
