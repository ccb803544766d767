"""Wire models returned by the Storage API and the option objects sent to it."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import HTTP_DOWNLOAD_TIMEOUT, HTTP_REQUEST_TIMEOUT, HTTP_UPLOAD_TIMEOUT
from .constants import CACHE_CONTROL_MAX_AGE, DEFAULT_CONTENT_TYPE


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------
class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Bucket(_WireModel):
    id: Optional[str] = None
    name: Optional[str] = None
    owner: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    public: bool = False
    file_size_limit: Optional[Union[int, str]] = None
    allowed_mimes: Optional[List[str]] = Field(default=None, alias="allowed_mime_types")

    def to_payload(self) -> Dict[str, Any]:
        """Serialise for create/update requests (``allowed_mime_types`` omitted when unset)."""

        payload: Dict[str, Any] = {
            "id": self.id,
            "public": self.public,
            "file_size_limit": self.file_size_limit,
        }
        if self.name is not None:
            payload["name"] = self.name
        if self.allowed_mimes is not None:
            payload["allowed_mime_types"] = list(self.allowed_mimes)
        return payload


class FileObject(_WireModel):
    name: Optional[str] = None
    bucket_id: Optional[str] = None
    owner: Optional[str] = None
    id: Optional[str] = None
    updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None
    buckets: Optional[Bucket] = None

    @property
    def is_folder(self) -> bool:
        return bool(self.name) and self.id is None and self.created_at is None and self.updated_at is None


class FileObjectV2(_WireModel):
    id: str
    version: Optional[str] = None
    name: Optional[str] = None
    bucket_id: Optional[str] = None
    updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    size: Optional[int] = None
    cache_control: Optional[str] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class CreateSignedUrlResponse(_WireModel):
    signed_url: Optional[str] = Field(default=None, alias="signedURL")


class CreateSignedUrlsResponse(CreateSignedUrlResponse):
    path: Optional[str] = None
    error: Optional[str] = None


class CreatedUploadSignedUrlResponse(_WireModel):
    url: Optional[str] = None


class GenericResponse(_WireModel):
    message: Optional[str] = None


class ErrorResponse(_WireModel):
    status_code: Optional[Union[int, str]] = Field(default=None, alias="statusCode")
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def parse_content(cls, content: Optional[str]) -> Optional["ErrorResponse"]:
        """Return the parsed error body, or ``None`` when it is not a JSON object."""

        if not content:
            return None
        try:
            return cls.model_validate_json(content)
        except ValueError:
            return None

    @property
    def status_code_value(self) -> Optional[int]:
        if self.status_code is None:
            return None
        try:
            return int(str(self.status_code).strip())
        except ValueError:
            return None


# ----------------------------------------------------------------------
# Options
# ----------------------------------------------------------------------
@dataclass
class ClientOptions:
    """Timeouts (seconds) for the three transports."""

    http_request_timeout: float = HTTP_REQUEST_TIMEOUT
    http_upload_timeout: float = HTTP_UPLOAD_TIMEOUT
    http_download_timeout: float = HTTP_DOWNLOAD_TIMEOUT


@dataclass
class BucketUpsertOptions:
    public: bool = False
    file_size_limit: Optional[Union[int, str]] = None
    allowed_mimes: Optional[List[str]] = None


@dataclass
class FileOptions:
    cache_control: str = str(CACHE_CONTROL_MAX_AGE)
    content_type: str = DEFAULT_CONTENT_TYPE
    upsert: bool = False
    duplex: Optional[str] = None
    metadata: Optional[Dict[str, str]] = None
    headers: Optional[Dict[str, str]] = None


class ResizeType(str, Enum):
    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"


@dataclass
class TransformOptions:
    width: Optional[int] = None
    height: Optional[int] = None
    resize: ResizeType = ResizeType.COVER
    quality: int = 80
    format: str = "origin"

    def to_query(self) -> Dict[str, str]:
        query: Dict[str, str] = {}
        if self.width is not None:
            query["width"] = str(self.width)
        if self.height is not None:
            query["height"] = str(self.height)
        if self.format is not None:
            query["format"] = self.format
        query["resize"] = ResizeType(self.resize).value
        query["quality"] = str(self.quality)
        return query

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "resize": ResizeType(self.resize).value,
            "quality": self.quality,
            "format": self.format,
        }
        if self.width is not None:
            body["width"] = self.width
        if self.height is not None:
            body["height"] = self.height
        return body


@dataclass
class DownloadOptions:
    """``file_name=""`` asks the server to use the object's original name."""

    file_name: Optional[str] = None

    @classmethod
    def use_original_file_name(cls) -> "DownloadOptions":
        return cls(file_name="")

    def to_query(self) -> Dict[str, str]:
        if self.file_name is None:
            return {}
        return {"download": self.file_name or "true"}


@dataclass
class DestinationOptions:
    destination_bucket: Optional[str] = None


@dataclass
class SortBy:
    column: str = "name"
    order: str = "asc"


@dataclass
class SearchOptions:
    limit: int = 100
    offset: int = 0
    search: str = ""
    sort_by: SortBy = field(default_factory=SortBy)

    def to_body(self, prefix: str) -> Dict[str, Any]:
        return {
            "prefix": prefix or "",
            "limit": self.limit,
            "offset": self.offset,
            "search": self.search,
            "sortBy": {"column": self.sort_by.column, "order": self.sort_by.order},
        }


@dataclass(frozen=True)
class UploadSignedUrl:
    signed_url: str
    token: str
    key: str
