"""Input and remote-content validation helpers."""

from __future__ import annotations

import re
from urllib.parse import urlparse

MEDIA_TYPES = ("video", "image", "gallery")
AUDIO_FORMATS = ("mp3", "m4a", "wav", "ogg")
VIDEO_QUALITIES = ("best", "1080", "720", "480")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9.-]", re.IGNORECASE)


def is_valid_url(url: str) -> bool:
    """True when ``url`` parses with both a scheme and a network location."""
    try:
        parsed = urlparse(str(url or "").strip())
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", str(filename or ""))


def is_valid_media_type(value: object) -> bool:
    return _enum_text(value) in MEDIA_TYPES


def is_valid_audio_format(value: object) -> bool:
    return _enum_text(value) in AUDIO_FORMATS


def is_valid_video_quality(value: object) -> bool:
    return _enum_text(value) in VIDEO_QUALITIES


def is_valid_content_type(content_type: str, expected_type: str) -> bool:
    """
    Check a response content-type against the expected media class.

    Videos may also arrive as a generic binary stream. Gallery items accept
    either class.
    """
    mime = str(content_type or "").split(";", 1)[0].strip().lower()
    if expected_type == "video":
        return mime.startswith("video/") or mime == "application/octet-stream"
    if expected_type == "image":
        return mime.startswith("image/")
    if expected_type == "gallery":
        return is_valid_content_type(mime, "image") or is_valid_content_type(mime, "video")
    return False


def is_valid_file_size(size: int, max_size: int) -> bool:
    return 0 < int(size) <= int(max_size)


def _enum_text(value: object) -> str:
    raw = getattr(value, "value", value)
    return str(raw) if raw is not None else ""
