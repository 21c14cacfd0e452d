"""Validated streaming downloads of remote media files."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from config.settings import HttpSettings, MediaSettings
from core import MediaType
from utils.exceptions import ValidationError
from utils.files import ensure_dir, exists, remove_quietly
from utils.validation import is_valid_content_type, is_valid_file_size

from .base import build_http_client


logger = logging.getLogger(__name__)


class MediaDownloader:
    """Downloads a remote file after checking its content-type and size."""

    def __init__(
        self,
        settings: MediaSettings,
        *,
        http: Optional[HttpSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.max_file_size = int(settings.max_file_size)
        self._http = http
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = build_http_client(self._http)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def validate_and_download(
        self,
        url: str,
        directory: Path,
        file_name: str,
        expected_type: MediaType,
    ) -> Path:
        """
        Fetch ``url`` into ``directory/file_name``.

        An existing target is reused as is. Headers are checked before any
        byte of the body is written.

        Raises:
            ValidationError: unexpected content-type or size over the limit
            httpx.HTTPError: transport or status failure
        """
        target = Path(directory) / file_name
        if await exists(target):
            logger.info("File already exists at path: %s", target)
            return target

        async with self._get_client().stream("GET", url) as response:
            response.raise_for_status()
            content_type = response.headers.get("content-type", "")
            size = int(response.headers.get("content-length") or 0)

            if not is_valid_content_type(content_type, expected_type.value):
                raise ValidationError(f"Invalid content type: {content_type or 'missing'}", url=url)
            if not is_valid_file_size(size, self.max_file_size):
                raise ValidationError(f"File size exceeds limit: {size} bytes", url=url, limit=self.max_file_size)

            await asyncio.to_thread(ensure_dir, directory)
            partial = target.with_name(target.name + ".part")
            written = 0
            try:
                fh = await asyncio.to_thread(open, partial, "wb")
                try:
                    async for chunk in response.aiter_bytes():
                        written += len(chunk)
                        if written > self.max_file_size:
                            raise ValidationError(f"File size exceeds limit: {written} bytes", url=url)
                        await asyncio.to_thread(fh.write, chunk)
                finally:
                    await asyncio.to_thread(fh.close)
                await asyncio.to_thread(partial.replace, target)
            except BaseException:
                await remove_quietly(partial)
                raise

        logger.info("Downloaded %s (%s bytes)", target.name, written)
        return target
