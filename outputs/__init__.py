"""
Outputs Module
Reply text and gallery pagination built from retrieval results.
"""

from .renderers import (
    format_one,
    format_options_suffix,
    format_retrieved,
    parse_format_option,
    served_url,
)
from .gallery import (
    GALLERY_COOLDOWN_SECONDS,
    GalleryNavigator,
    GalleryState,
    parse_custom_id,
)

__all__ = [
    # Renderers
    "format_one",
    "format_options_suffix",
    "format_retrieved",
    "parse_format_option",
    "served_url",
    # Gallery
    "GALLERY_COOLDOWN_SECONDS",
    "GalleryNavigator",
    "GalleryState",
    "parse_custom_id",
]
