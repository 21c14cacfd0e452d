"""
Reply Renderers
Turn retrieval results into chat reply text.
"""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urljoin

from core import MediaOptions, MediaType, ProcessedMedia


def served_url(host: str, file_name: str) -> str:
    """Public link of a file inside the download directory."""
    base = host if host.endswith("/") else host + "/"
    return urljoin(base, file_name)


def _gallery_position(media: ProcessedMedia) -> int:
    for position, item in enumerate(media.files or [], start=1):
        if item.file == media.file:
            return position
    return 1


def format_one(media: ProcessedMedia, host: str) -> str:
    if media.raw:
        return f"-# {media.raw}"
    if not media.file:
        return ""
    base_text = f"-# [View original](<{media.original}>)"
    link = f"[`{media.file}`]({served_url(host, media.file)})"
    if media.type == MediaType.GALLERY and media.files and media.total:
        return f"{base_text} • Gallery ({_gallery_position(media)}/{media.total}) • {link}"
    return f"{base_text} • {link}"


def format_retrieved(results: Iterable[ProcessedMedia], host: str) -> str:
    """One line per result: rewritten URLs as subtext, files as links."""
    return "\n".join(format_one(media, host) for media in results)


def format_options_suffix(options: Optional[MediaOptions]) -> str:
    if options is None:
        return ""
    suffix = ""
    if options.audio_only:
        suffix += "\n🎵 Audio Only"
    if options.quality:
        suffix += f"\n📹 Quality: {options.quality.value}"
    return suffix


def parse_format_option(value: Optional[str]) -> Optional[MediaOptions]:
    """
    Parse a command format choice such as ``video_720`` or ``audio_mp3``.

    Unknown formats fall back to unset, like any other option.
    """
    text = str(value or "").strip().lower()
    if not text or "_" not in text:
        return None
    kind, choice = text.split("_", 1)
    if kind == "video":
        return MediaOptions.from_raw({"quality": choice})
    if kind == "audio":
        return MediaOptions.from_raw({"audio_only": True, "audio_format": choice})
    return None
