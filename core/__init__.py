"""Core contracts and shared types for the retrieval engine."""

from .contracts import (
    AudioFormat,
    GalleryItem,
    HandlerContext,
    HandlerFlag,
    Initiator,
    MediaOptions,
    MediaType,
    ProcessedMedia,
    ResolvedURL,
    VideoQuality,
    summarize_media,
    target_extension,
)

__all__ = [
    "AudioFormat",
    "GalleryItem",
    "HandlerContext",
    "HandlerFlag",
    "Initiator",
    "MediaOptions",
    "MediaType",
    "ProcessedMedia",
    "ResolvedURL",
    "VideoQuality",
    "summarize_media",
    "target_extension",
]
