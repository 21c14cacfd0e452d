"""
Base Handler
Abstract base classes for every retrieval backend.
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import FrozenSet, Optional
import asyncio
import logging
import time

import httpx

from config.settings import HttpSettings, MediaSettings
from core import (
    HandlerContext,
    HandlerFlag,
    Initiator,
    MediaOptions,
    MediaType,
    ProcessedMedia,
    ResolvedURL,
    target_extension,
)
from utils.exceptions import HandlerError


logger = logging.getLogger(__name__)


def build_http_client(http: Optional[HttpSettings] = None) -> httpx.AsyncClient:
    """Shared client configuration for API and page requests."""
    http = http or HttpSettings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(http.request_timeout),
        headers={"User-Agent": http.user_agent},
        follow_redirects=True,
    )


class BaseHandler(ABC):
    """
    Handler base class

    A handler turns a resolved URL into media. ``flags`` decide when the
    orchestrator may run it and how its output is interpreted.
    """

    flags: FrozenSet[HandlerFlag] = frozenset()
    expected_type: MediaType = MediaType.VIDEO

    def __init__(self, *, client: Optional[httpx.AsyncClient] = None, http: Optional[HttpSettings] = None):
        self._http = http
        self._client = client
        self._owns_client = client is None

    @property
    @abstractmethod
    def name(self) -> str:
        """Short backend name used in logs"""
        pass

    @abstractmethod
    async def handle(self, url: ResolvedURL, context: HandlerContext) -> ProcessedMedia:
        """
        Produce media for ``url``.

        Args:
            url: resolved input URL
            context: whether the target file already exists, plus options

        Returns:
            The retrieved media

        Raises:
            Exception: any failure; the orchestrator moves on to the next handler
        """
        pass

    def has_flag(self, flag: HandlerFlag) -> bool:
        return flag in self.flags

    def runs_on(self, initiator: Initiator) -> bool:
        return self.has_flag(initiator.flag)

    @property
    def returns_raw_url(self) -> bool:
        return self.has_flag(HandlerFlag.RETURNS_RAW_URL)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = build_http_client(self._http)
            self._owns_client = True
        return self._client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Release the HTTP client if this handler created it"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _fail(self, message: str) -> HandlerError:
        return HandlerError(message, handler=self.name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class DownloadingHandler(BaseHandler):
    """Handler that stores files under the configured directories."""

    flags = frozenset({HandlerFlag.RUN_ON_INTERACTION, HandlerFlag.RUN_ON_MESSAGE})

    def __init__(self, settings: MediaSettings, transcoder=None, downloader=None, **kwargs):
        super().__init__(**kwargs)
        self.settings = settings
        self.transcoder = transcoder
        self.downloader = downloader

    @property
    def tmp_dir(self) -> Path:
        return self.settings.tmp_path

    @property
    def download_dir(self) -> Path:
        return self.settings.download_path

    def file_name(self, url: ResolvedURL, extension: str) -> str:
        return f"{url.file_base_name}.{extension}"

    def existing_result(self, url: ResolvedURL, options: Optional[MediaOptions]) -> ProcessedMedia:
        """Describe an already present target without fetching anything."""
        extension = target_extension(self.expected_type, options)
        return ProcessedMedia(
            original=url.input,
            type=self.expected_type,
            file=self.file_name(url, extension),
        )

    async def close(self):
        await super().close()
        if self.downloader is not None:
            await self.downloader.close()


class RateLimitedHandler(DownloadingHandler):
    """
    Handler for billed APIs: spaced requests and bounded concurrency
    """

    def __init__(self, settings: MediaSettings, *, requests_per_second: float = 1.0, max_concurrency: int = 1, **kwargs):
        super().__init__(settings, **kwargs)
        self._rate_limit = requests_per_second
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()
        self._slots = asyncio.Semaphore(max(1, int(max_concurrency)))

    async def _wait_for_rate_limit(self):
        """Sleep until the next request is allowed"""
        async with self._lock:
            current_time = time.monotonic()
            time_since_last = current_time - self._last_request_time
            min_interval = 1.0 / self._rate_limit

            if time_since_last < min_interval:
                await asyncio.sleep(min_interval - time_since_last)

            self._last_request_time = time.monotonic()

    @asynccontextmanager
    async def throttled(self):
        async with self._slots:
            await self._wait_for_rate_limit()
            yield
