"""HTTP transports and request helpers shared by the storage APIs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Mapping, Optional, TypeVar

import httpx

from .exceptions import StorageError, TransferCancelledError
from .models import ClientOptions


LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class StorageTransports:
    """The three HTTP clients used by a storage client.

    Plain requests, uploads and downloads each get their own ``httpx.AsyncClient``
    so their timeouts can be set independently.
    """

    def __init__(
        self,
        options: Optional[ClientOptions] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.options = options or ClientOptions()
        self.request_client = httpx.AsyncClient(timeout=self.options.http_request_timeout, transport=transport)
        self.upload_client = httpx.AsyncClient(timeout=self.options.http_upload_timeout, transport=transport)
        self.download_client = httpx.AsyncClient(timeout=self.options.http_download_timeout, transport=transport)

    async def aclose(self) -> None:
        for client in (self.request_client, self.upload_client, self.download_client):
            await client.aclose()


def merge_headers(*sources: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Merge header mappings left to right; later values win, names compare case-insensitively."""

    merged: Dict[str, str] = {}
    index: Dict[str, str] = {}
    for source in sources:
        if not source:
            continue
        for name, value in source.items():
            existing = index.get(name.lower())
            if existing is not None:
                merged.pop(existing, None)
            merged[name] = value
            index[name.lower()] = name
    return merged


async def raise_for_storage_error(response: httpx.Response) -> None:
    """Turn a non-success response into a :class:`StorageError`.

    Works for streamed responses too; the body is read before raising.
    """

    if response.is_success:
        return
    await response.aread()
    content = response.text
    LOGGER.debug("Storage request %s %s failed: %s %s", response.request.method, response.request.url, response.status_code, content)
    raise StorageError.from_response(response, content)


async def make_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    data: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, str]] = None,
) -> httpx.Response:
    json_body = data if data is not None and method.upper() != "GET" else None
    response = await client.request(method, url, json=json_body, headers=dict(headers or {}), params=params)
    await raise_for_storage_error(response)
    return response


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    data: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, str]] = None,
) -> Any:
    """Issue a request and return the decoded JSON body (``None`` for an empty body)."""

    response = await make_request(client, method, url, data=data, headers=headers, params=params)
    if not response.content:
        return None
    return response.json()


async def send_cancellable(awaitable: Awaitable[T], cancel_event: Optional[asyncio.Event]) -> T:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    When the event wins, the pending request is cancelled and
    :class:`TransferCancelledError` is raised.
    """

    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise TransferCancelledError("Transfer cancelled before the request was sent")

    request_task = asyncio.ensure_future(awaitable)
    cancel_task = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        request_task.cancel()
        raise
    finally:
        cancel_task.cancel()

    if request_task in done:
        return request_task.result()

    request_task.cancel()
    await asyncio.gather(request_task, return_exceptions=True)
    raise TransferCancelledError("Transfer cancelled while a request was in flight")
