"""Handler chains per recognized service."""

from __future__ import annotations

from typing import Dict, Iterable, List

from config.settings import Settings

from .autolink import AutolinkApiHandler
from .base import BaseHandler
from .download import MediaDownloader
from .instagram import InstagramApiHandler
from .mirrors import InstagramMirrorHandler, TikTokMirrorHandler
from .rewriters import BlueskyRewriter, TwitterRewriter
from .ytdl import YtdlHandler


def build_service_handlers(settings: Settings, transcoder) -> Dict[str, List[BaseHandler]]:
    """
    Ordered fallback chains keyed by service name.

    Billed APIs come first where they are most reliable; the general
    downloader is the last resort.
    """
    media = settings.media
    downloader = MediaDownloader(media, http=settings.http)
    shared = dict(transcoder=transcoder, downloader=downloader, http=settings.http)

    ytdl = YtdlHandler(media, **shared)
    autolink = AutolinkApiHandler(media, **shared)

    return {
        "instagram": [
            InstagramApiHandler(media, **shared),
            InstagramMirrorHandler(media, **shared),
            autolink,
            ytdl,
        ],
        "tiktok": [TikTokMirrorHandler(media, **shared), autolink, ytdl],
        "twitter": [TwitterRewriter()],
        "bluesky": [BlueskyRewriter()],
        "youtube": [ytdl],
        "generic": [ytdl],
    }


async def close_handlers(chains: Dict[str, Iterable[BaseHandler]]) -> None:
    """Close every distinct handler once."""
    seen = set()
    for handlers in chains.values():
        for handler in handlers:
            if id(handler) in seen:
                continue
            seen.add(id(handler))
            await handler.close()
