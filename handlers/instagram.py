"""
Instagram API Handler
Post lookup through the scraper API: single video, single image or carousel.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
import logging
import re

from config.settings import MediaSettings
from core import (
    GalleryItem,
    HandlerContext,
    MediaOptions,
    MediaType,
    ProcessedMedia,
    ResolvedURL,
    target_extension,
)
from utils.exceptions import HandlerError
from utils.files import exists

from .base import RateLimitedHandler
from .rapid import RapidApiClient


logger = logging.getLogger(__name__)

_EXTENSION = re.compile(r"^[a-zA-Z0-9]+$")


@dataclass
class MediaInfo:
    """One remote media reference extracted from an API payload"""
    type: MediaType
    url: str
    extension: str
    items: List["MediaInfo"] = field(default_factory=list)


def file_extension(url: str, media_type: MediaType) -> str:
    """Extension for a remote URL: jpg for images, the URL's own for videos."""
    if media_type in (MediaType.IMAGE, MediaType.GALLERY):
        return "jpg"
    try:
        tail = urlparse(url).path.rsplit("/", 1)[-1]
    except ValueError:
        return "mp4"
    if "." not in tail:
        return "mp4"
    extension = tail.rsplit(".", 1)[-1]
    return extension if _EXTENSION.match(extension) else "mp4"


def parse_media_info(data: Optional[Dict[str, Any]]) -> MediaInfo:
    """
    Interpret a post payload.

    Carousels are checked first; otherwise ``is_video`` picks between the
    video and display URLs.
    """
    if not data:
        raise HandlerError("No data returned from Instagram API", handler="ig")

    carousel = data.get("carousel_media") or []
    if data.get("media_type") == "carousel" or carousel:
        if not carousel:
            raise HandlerError("No carousel items found", handler="ig")
        items = []
        for index, item in enumerate(carousel, start=1):
            is_video = bool(item.get("is_video"))
            media_url = item.get("video_url") if is_video else item.get("display_url")
            if not media_url:
                raise HandlerError(f"No URL found for carousel item {index}", handler="ig")
            item_type = MediaType.VIDEO if is_video else MediaType.IMAGE
            items.append(MediaInfo(type=item_type, url=media_url, extension=file_extension(media_url, item_type)))
        logger.info("Instagram carousel with %d items", len(items))
        return MediaInfo(
            type=MediaType.GALLERY,
            url=items[0].url,
            extension=file_extension(items[0].url, MediaType.GALLERY),
            items=items,
        )

    if data.get("is_video"):
        if not data.get("video_url"):
            raise HandlerError("No video URL found", handler="ig")
        return MediaInfo(type=MediaType.VIDEO, url=data["video_url"], extension=file_extension(data["video_url"], MediaType.VIDEO))

    if not data.get("display_url"):
        raise HandlerError("No display URL found for image", handler="ig")
    return MediaInfo(type=MediaType.IMAGE, url=data["display_url"], extension="jpg")


class InstagramApiHandler(RateLimitedHandler):
    """
    Instagram posts through the scraper API

    Requests are capped at 4/s with 24 in flight. Carousel items are
    fetched one by one; an item that fails is skipped.
    """

    API_HOST = "instagram-scraper-api2.p.rapidapi.com"

    def __init__(self, settings: MediaSettings, **kwargs):
        super().__init__(settings, requests_per_second=4.0, max_concurrency=24, **kwargs)

    @property
    def name(self) -> str:
        return "ig"

    async def fetch_post(self, url: str) -> Dict[str, Any]:
        api = RapidApiClient(self.API_HOST, self.settings.rapid_api_key, self._get_client())
        async with self.throttled():
            payload = await api.get_json("v1/post_info", params={"code_or_id_or_url": url})
        if not payload:
            raise self._fail("API returned no data")
        if payload.get("detail") and not payload.get("data"):
            raise self._fail(str(payload["detail"]))
        return payload.get("data") or {}

    async def handle(self, url: ResolvedURL, context: HandlerContext) -> ProcessedMedia:
        if context.file_exists:
            return self.existing_result(url, context.options)

        info = parse_media_info(await self.fetch_post(url.input))

        if info.type == MediaType.GALLERY:
            return await self._download_gallery(url, info)

        options = context.options
        if info.type == MediaType.VIDEO and not (options and options.audio_only):
            extension = info.extension
        else:
            extension = target_extension(info.type, options)
        file_name = self.file_name(url, extension)
        await self._download_item(info, file_name, context.options)
        return ProcessedMedia(original=url.input, type=info.type, file=file_name)

    async def _download_item(self, info: MediaInfo, file_name: str, options: Optional[MediaOptions]) -> None:
        """Images land in the download dir; videos are staged and transcoded."""
        if info.type == MediaType.IMAGE:
            await self.downloader.validate_and_download(info.url, self.download_dir, file_name, MediaType.IMAGE)
            return

        if await exists(self.download_dir / file_name):
            logger.info("Transcoded file already exists: %s", file_name)
            return
        await self.downloader.validate_and_download(info.url, self.tmp_dir, file_name, MediaType.VIDEO)
        await self.transcoder.transcode(file_name, options)

    async def _download_gallery(self, url: ResolvedURL, info: MediaInfo) -> ProcessedMedia:
        logger.info("Downloading %d gallery items", len(info.items))
        processed: List[GalleryItem] = []

        for index, item in enumerate(info.items, start=1):
            item_ext = "mp4" if item.type == MediaType.VIDEO else "jpg"
            item_name = f"{url.file_base_name}_{index}.{item_ext}"
            try:
                await self._download_item(item, item_name, None)
            except Exception as exc:
                logger.error("Failed to download gallery item %d: %s", index, exc)
                continue
            processed.append(GalleryItem(file=item_name, type=item.type, index=index))

        if not processed:
            raise self._fail(f"None of the {len(info.items)} gallery items could be retrieved")

        logger.info("Downloaded %d/%d gallery items", len(processed), len(info.items))
        return ProcessedMedia(
            original=url.input,
            type=MediaType.GALLERY,
            file=processed[0].file,
            files=processed,
            total=len(processed),
        )
