"""In-memory cache of resumable upload locations with sliding expiration."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from .config import UPLOAD_CACHE_TTL_SECONDS
from .exceptions import StorageArgumentError


LOGGER = logging.getLogger(__name__)

MIN_TTL_SECONDS = 5 * 60


def _effective_ttl(ttl: Optional[float]) -> float:
    if ttl is None or ttl <= 0:
        return float(MIN_TTL_SECONDS)
    return float(ttl)


@dataclass
class UploadCacheEntry:
    key: str
    url: str
    ttl: float
    expiration: float

    def touch(self, now: float) -> None:
        self.expiration = now + self.ttl

    def is_expired(self, now: float) -> bool:
        return now >= self.expiration


class UploadUrlCache:
    """Remember resumable upload locations so a retried upload can skip the create call.

    Keys are chosen by the caller (bucket + object path works well). Entries
    expire ``ttl`` seconds after they were last set or read. Expired entries
    are dropped lazily on read and swept on every write.
    """

    def __init__(
        self,
        default_ttl: float = UPLOAD_CACHE_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: Dict[str, UploadCacheEntry] = {}
        self._lock = Lock()
        self._clock = clock
        self._default_ttl = _effective_ttl(default_ttl)

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.count

    def set_default_ttl(self, ttl: float) -> None:
        """Set the ttl used by entries stored without one; ``ttl <= 0`` means 5 minutes."""

        self._default_ttl = _effective_ttl(ttl)

    def set(self, key: str, url: str, ttl: Optional[float] = None) -> None:
        if not key or not key.strip():
            raise StorageArgumentError("Key must be provided.")
        if not url or not url.strip():
            raise StorageArgumentError("Url must be provided.")

        entry_ttl = _effective_ttl(self._default_ttl if ttl is None else ttl)
        now = self._clock()
        entry = UploadCacheEntry(key=key, url=url, ttl=entry_ttl, expiration=now + entry_ttl)
        with self._lock:
            self._entries[key] = entry
        LOGGER.debug("Cached upload location for %s (ttl=%ss)", key, entry_ttl)
        self._evict_expired(now)

    def try_get(self, key: str) -> Tuple[bool, Optional[str]]:
        if not key or not key.strip():
            return False, None

        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            if entry.is_expired(now):
                del self._entries[key]
                LOGGER.debug("Upload location for %s expired", key)
                return False, None
            entry.touch(now)
            return True, entry.url

    def get_entry(self, key: str) -> Optional[UploadCacheEntry]:
        """Return a copy of the entry for ``key`` without refreshing it."""

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return UploadCacheEntry(key=entry.key, url=entry.url, ttl=entry.ttl, expiration=entry.expiration)

    def remove(self, key: str) -> bool:
        if not key or not key.strip():
            return False
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_expired(self, now: float) -> None:
        with self._lock:
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            with self._lock:
                entry = self._entries.get(key)
                # Another caller may have replaced or removed it since the scan
                if entry is not None and entry.is_expired(now):
                    del self._entries[key]
        if expired:
            LOGGER.debug("Evicted %s expired upload locations", len(expired))
