"""Header names, endpoint paths and defaults used by the Storage API."""

from __future__ import annotations


class Headers:
    AUTHORIZATION = "Authorization"
    CACHE_CONTROL = "cache-control"
    CONTENT_TYPE = "content-type"
    UPSERT = "x-upsert"
    METADATA = "x-metadata"
    DUPLEX = "x-duplex"
    CLIENT_INFO = "X-Client-Info"


class Endpoints:
    BUCKET = "/bucket"
    OBJECT = "/object"
    OBJECT_PUBLIC = "/object/public"
    OBJECT_SIGN = "/object/sign"
    OBJECT_LIST = "/object/list"
    OBJECT_INFO = "/object/info"
    OBJECT_MOVE = "/object/move"
    OBJECT_COPY = "/object/copy"
    RENDER_IMAGE_AUTHENTICATED = "/render/image/authenticated"
    RENDER_IMAGE_PUBLIC = "/render/image/public"
    UPLOAD_RESUMABLE = "/upload/resumable"
    UPLOAD_SIGN = "/object/upload/sign"


class Tus:
    VERSION = "1.0.0"
    RESUMABLE = "Tus-Resumable"
    UPLOAD_LENGTH = "Upload-Length"
    UPLOAD_OFFSET = "Upload-Offset"
    UPLOAD_METADATA = "Upload-Metadata"
    OFFSET_CONTENT_TYPE = "application/offset+octet-stream"


CACHE_CONTROL_MAX_AGE = 3600
UPLOAD_CHUNK_SIZE = 6 * 1024 * 1024
UPLOAD_BUFFER_SIZE = 4096
DOWNLOAD_BUFFER_SIZE = 81920
DEFAULT_CONTENT_TYPE = "text/plain;charset=UTF-8"
