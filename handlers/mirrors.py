"""Page-scrape handlers reading media URLs from mirror-site meta tags."""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple
from urllib.parse import urljoin, urlparse

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core import HandlerContext, MediaType, ProcessedMedia, ResolvedURL

from .base import DownloadingHandler


logger = logging.getLogger(__name__)


class MirrorPageHandler(DownloadingHandler):
    """Fetches the same path from ``mirror_host`` and scrapes its metadata."""

    mirror_host = ""

    def mirror_url(self, url: str) -> str:
        parsed = urlparse(url)
        netloc = self.mirror_host if parsed.port is None else f"{self.mirror_host}:{parsed.port}"
        return parsed._replace(netloc=netloc).geturl()

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def fetch_page(self, url: str) -> str:
        resp = await self._get_client().get(url)
        resp.raise_for_status()
        return resp.text

    def extract(self, html: str) -> Tuple[MediaType, str, Optional[str]]:
        """Return ``(type, media_url, extension)`` or raise when nothing matches."""
        raise NotImplementedError

    async def handle(self, url: ResolvedURL, context: HandlerContext) -> ProcessedMedia:
        if context.file_exists:
            return self.existing_result(url, context.options)

        page_url = self.mirror_url(url.input)
        media_type, media_url, extension = self.extract(await self.fetch_page(page_url))
        media_url = urljoin(f"https://{self.mirror_host}/", media_url)
        options = context.options

        if media_type == MediaType.IMAGE:
            file_name = self.file_name(url, "jpg")
            await self.downloader.validate_and_download(media_url, self.download_dir, file_name, MediaType.IMAGE)
            return ProcessedMedia(original=url.input, type=MediaType.IMAGE, file=file_name)

        if options and options.audio_only:
            extension = options.audio_extension
        file_name = self.file_name(url, extension or "mp4")
        await self.downloader.validate_and_download(media_url, self.tmp_dir, file_name, MediaType.VIDEO)
        await self.transcoder.transcode(file_name, options)
        return ProcessedMedia(original=url.input, type=MediaType.VIDEO, file=file_name)


class InstagramMirrorHandler(MirrorPageHandler):
    """Instagram posts via ddinstagram player-card tags."""

    mirror_host = "ddinstagram.com"
    PATTERN = re.compile(
        r'(<meta name="twitter:player:stream" content="(?P<video>/videos/[a-z0-9_-]+/\d)"/>'
        r'<meta name="twitter:player:stream:content_type" content="video/(?P<ext>[a-z0-9_-]+)")'
        r'|(<meta name="twitter:image" content="(?P<image>/images/[a-z0-9_-]+/\d)")',
        re.IGNORECASE,
    )

    @property
    def name(self) -> str:
        return "dd"

    def extract(self, html: str) -> Tuple[MediaType, str, Optional[str]]:
        match = self.PATTERN.search(html)
        if match is None or not (match.group("video") or match.group("image")):
            raise self._fail("No video or image found")
        if match.group("video"):
            return MediaType.VIDEO, match.group("video"), match.group("ext") or "mp4"
        return MediaType.IMAGE, match.group("image"), "jpg"


class TikTokMirrorHandler(MirrorPageHandler):
    """TikTok videos via tnktok Open Graph tags."""

    mirror_host = "tnktok.com"
    PATTERN = re.compile(
        r'<meta property="og:video" content="(?P<video>[^"]+)"(.+)'
        r'<meta property="og:video:type" content="video/(?P<ext>[a-z0-9_-]+)"',
        re.IGNORECASE | re.DOTALL,
    )

    @property
    def name(self) -> str:
        return "tnk"

    def extract(self, html: str) -> Tuple[MediaType, str, Optional[str]]:
        match = self.PATTERN.search(html)
        if match is None:
            raise self._fail("No video found")
        return MediaType.VIDEO, match.group("video"), match.group("ext") or "mp4"
