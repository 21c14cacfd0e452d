"""
Handlers Module
Retrieval backends behind one ``handle`` contract.
"""
from .base import BaseHandler, DownloadingHandler, RateLimitedHandler, build_http_client
from .download import MediaDownloader
from .rapid import RapidApiClient
from .rewriters import BlueskyRewriter, RewriteHandler, TwitterRewriter
from .instagram import InstagramApiHandler, parse_media_info
from .autolink import AutolinkApiHandler
from .mirrors import InstagramMirrorHandler, MirrorPageHandler, TikTokMirrorHandler
from .ytdl import YtdlHandler
from .registry import build_service_handlers, close_handlers

__all__ = [
    # Base
    "BaseHandler",
    "DownloadingHandler",
    "RateLimitedHandler",
    "build_http_client",
    "MediaDownloader",
    "RapidApiClient",
    # Rewriters
    "RewriteHandler",
    "BlueskyRewriter",
    "TwitterRewriter",
    # Scraper APIs
    "InstagramApiHandler",
    "parse_media_info",
    "AutolinkApiHandler",
    # Page scrapers
    "MirrorPageHandler",
    "InstagramMirrorHandler",
    "TikTokMirrorHandler",
    # Downloader process
    "YtdlHandler",
    "build_service_handlers",
    "close_handlers",
]
