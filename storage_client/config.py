"""Configuration management for the storage client."""

import os
from typing import Optional

from dotenv import load_dotenv

from .constants import UPLOAD_CHUNK_SIZE as _DEFAULT_CHUNK_SIZE

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


# Remote service
STORAGE_URL = _env_str("STORAGE_URL") or _env_str("SUPABASE_URL")
STORAGE_KEY = _env_str("STORAGE_KEY") or _env_str("SUPABASE_SERVICE_ROLE_KEY")

# Timeouts (seconds), one per transport
HTTP_REQUEST_TIMEOUT = _env_float("STORAGE_HTTP_REQUEST_TIMEOUT", 30.0)
HTTP_UPLOAD_TIMEOUT = _env_float("STORAGE_HTTP_UPLOAD_TIMEOUT", 300.0)
HTTP_DOWNLOAD_TIMEOUT = _env_float("STORAGE_HTTP_DOWNLOAD_TIMEOUT", 300.0)

# Resumable uploads
UPLOAD_CACHE_TTL_SECONDS = _env_float("STORAGE_UPLOAD_CACHE_TTL", 60 * 60)
UPLOAD_CHUNK_SIZE = _env_int("STORAGE_UPLOAD_CHUNK_SIZE", _DEFAULT_CHUNK_SIZE)

# Logging
LOG_LEVEL = (os.getenv("STORAGE_LOG_LEVEL") or "INFO").strip().upper()
