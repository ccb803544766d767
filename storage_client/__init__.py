"""Storage Client - async client for a Supabase-compatible object storage API."""

__version__ = "0.1.0"

from .client import StorageClient
from .exceptions import FailureReason, StorageArgumentError, StorageError, TransferCancelledError
from .models import (
    Bucket,
    BucketUpsertOptions,
    ClientOptions,
    DestinationOptions,
    DownloadOptions,
    FileObject,
    FileObjectV2,
    FileOptions,
    ResizeType,
    SearchOptions,
    SortBy,
    TransformOptions,
    UploadSignedUrl,
)
from .upload_cache import UploadUrlCache

__all__ = [
    'StorageClient',
    'StorageError',
    'StorageArgumentError',
    'TransferCancelledError',
    'FailureReason',
    'UploadUrlCache',
    'Bucket',
    'BucketUpsertOptions',
    'ClientOptions',
    'DestinationOptions',
    'DownloadOptions',
    'FileObject',
    'FileObjectV2',
    'FileOptions',
    'ResizeType',
    'SearchOptions',
    'SortBy',
    'TransformOptions',
    'UploadSignedUrl',
]
