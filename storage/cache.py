"""
Result Cache
Process-lifetime memoization of retrieval outcomes, keyed by input URL.
"""
import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

from core import ProcessedMedia


logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class CacheEntry:
    """Stored value. Entries are replaced wholesale, never mutated."""
    key: str
    value: str
    stored_at: float


class ResultCache:
    """
    In-memory cache with time-based expiry

    Expired entries are dropped lazily on read and proactively by an
    optional background sweep task.
    """

    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        debug: bool = False,
    ):
        """
        Args:
            ttl: entry lifetime in seconds
            clock: time source returning seconds
            debug: log every hit and store
        """
        self.ttl = float(ttl)
        self._clock = clock
        self._debug = debug
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._sweeper: Optional[asyncio.Task] = None

    @staticmethod
    def make_key(url: str) -> str:
        """Digest of the input URL"""
        return hashlib.md5(str(url).encode("utf-8")).hexdigest()

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl

    def get(self, url: str) -> Optional[str]:
        """Return the stored value, or None when absent or expired."""
        key = self.make_key(url)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                if self._debug:
                    logger.debug(f"Expired cache entry removed: {url} ({key})")
                return None
        if self._debug:
            logger.debug(f"Cache hit: {url} ({key})")
        return entry.value

    def set(self, url: str, value: str) -> None:
        """Store a value, overwriting any previous entry."""
        key = self.make_key(url)
        entry = CacheEntry(key=key, value=value, stored_at=self._clock())
        with self._lock:
            self._entries[key] = entry
        if self._debug:
            logger.debug(f"Cache stored: {url} ({key})")

    def has(self, url: str) -> bool:
        return self.get(url) is not None

    def delete(self, url: str) -> None:
        with self._lock:
            self._entries.pop(self.make_key(url), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_media(self, url: str) -> Optional[ProcessedMedia]:
        """Deserialize a cached result for ``url``."""
        value = self.get(url)
        if value is None:
            return None
        return ProcessedMedia.model_validate_json(value)

    def set_media(self, url: str, media: ProcessedMedia) -> None:
        self.set(url, media.model_dump_json(exclude_none=True))

    def sweep(self) -> int:
        """Evict every expired entry. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, v in self._entries.items() if self._is_expired(v, now)]
            for key in expired:
                del self._entries[key]
        if expired and self._debug:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def start_sweeper(self, interval: float = CACHE_TTL_SECONDS) -> asyncio.Task:
        """Run ``sweep`` every ``interval`` seconds on the running loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper

        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval)
                self.sweep()

        self._sweeper = asyncio.get_running_loop().create_task(_loop())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
