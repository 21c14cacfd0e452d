"""All-in-one social download API."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from config.settings import MediaSettings
from core import HandlerContext, MediaType, ProcessedMedia, ResolvedURL

from .base import RateLimitedHandler
from .rapid import RapidApiClient


logger = logging.getLogger(__name__)

_SAFE_EXTENSION = re.compile(r"^[a-z0-9]+$", re.IGNORECASE)


class AutolinkApiHandler(RateLimitedHandler):
    """Looks up the first video of a post; 3 requests per second."""

    API_HOST = "auto-download-all-in-one.p.rapidapi.com"

    def __init__(self, settings: MediaSettings, **kwargs):
        super().__init__(settings, requests_per_second=3.0, max_concurrency=3, **kwargs)

    @property
    def name(self) -> str:
        return "j2"

    async def fetch_medias(self, url: str) -> Dict[str, Any]:
        api = RapidApiClient(self.API_HOST, self.settings.rapid_api_key, self._get_client())
        async with self.throttled():
            data = await api.post_json("v1/social/autolink", {"url": url})
        if not data:
            raise self._fail("No data returned")
        if data.get("error"):
            raise self._fail(data.get("message") or "Unknown error")
        return data

    async def handle(self, url: ResolvedURL, context: HandlerContext) -> ProcessedMedia:
        if context.file_exists:
            return self.existing_result(url, context.options)

        data = await self.fetch_medias(url.input)
        video = next((m for m in data.get("medias") or [] if m.get("type") == "video"), None)
        if not video or not video.get("url"):
            raise self._fail("No video found")

        options = context.options
        if options and options.audio_only:
            extension = options.audio_extension
        else:
            extension = str(video.get("extension") or "mp4")
            if not _SAFE_EXTENSION.match(extension):
                extension = "mp4"
        file_name = self.file_name(url, extension)

        await self.downloader.validate_and_download(video["url"], self.tmp_dir, file_name, MediaType.VIDEO)
        await self.transcoder.transcode(file_name, options)
        return ProcessedMedia(original=url.input, type=MediaType.VIDEO, file=file_name)
