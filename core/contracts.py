"""Canonical data contracts shared by the orchestrator, handlers and outputs."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from utils.validation import sanitize_filename


class MediaType(str, Enum):
    """Kinds of media a retrieval can produce."""

    VIDEO = "video"
    IMAGE = "image"
    GALLERY = "gallery"


class AudioFormat(str, Enum):
    MP3 = "mp3"
    M4A = "m4a"
    WAV = "wav"
    OGG = "ogg"


class VideoQuality(str, Enum):
    BEST = "best"
    P1080 = "1080"
    P720 = "720"
    P480 = "480"


class HandlerFlag(str, Enum):
    """Capability flags gating handler eligibility and output interpretation."""

    RUN_ON_MESSAGE = "RUN_ON_MESSAGE"
    RUN_ON_INTERACTION = "RUN_ON_INTERACTION"
    RETURNS_RAW_URL = "RETURNS_RAW_URL"


class Initiator(str, Enum):
    """What triggered a retrieval: a passive message or an explicit command."""

    MESSAGE = "message"
    INTERACTION = "interaction"

    @property
    def flag(self) -> HandlerFlag:
        return HandlerFlag(f"RUN_ON_{self.value.upper()}")


def _enum_or_none(enum_cls, value: Any):
    if value is None or value == "":
        return None
    try:
        return enum_cls(getattr(value, "value", value))
    except ValueError:
        return None


class MediaOptions(BaseModel):
    """Caller-supplied output preferences. Unknown values revert to unset."""

    audio_only: Optional[bool] = None
    audio_format: Optional[AudioFormat] = None
    quality: Optional[VideoQuality] = None

    @field_validator("audio_only", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Optional[bool]:
        if value is None:
            return None
        return bool(value)

    @field_validator("audio_format", mode="before")
    @classmethod
    def _drop_unknown_format(cls, value: Any) -> Optional[AudioFormat]:
        return _enum_or_none(AudioFormat, value)

    @field_validator("quality", mode="before")
    @classmethod
    def _drop_unknown_quality(cls, value: Any) -> Optional[VideoQuality]:
        return _enum_or_none(VideoQuality, value)

    @classmethod
    def from_raw(cls, raw: Union["MediaOptions", Mapping[str, Any], None]) -> Optional["MediaOptions"]:
        """Validate loose input. Returns None when nothing recognizable remains."""
        if raw is None:
            return None
        payload = raw.model_dump() if isinstance(raw, MediaOptions) else dict(raw)
        options = cls(
            audio_only=payload.get("audio_only", payload.get("audioOnly")),
            audio_format=payload.get("audio_format", payload.get("audioFormat")),
            quality=payload.get("quality"),
        )
        if options.audio_only is None and options.audio_format is None and options.quality is None:
            return None
        return options

    @property
    def audio_extension(self) -> str:
        return (self.audio_format or AudioFormat.MP3).value


def target_extension(media_type: MediaType, options: Optional[MediaOptions] = None) -> str:
    """On-disk extension for a desired media type under the given options."""
    if media_type == MediaType.VIDEO and options is not None and options.audio_only:
        return options.audio_extension
    if media_type in (MediaType.IMAGE, MediaType.GALLERY):
        return "jpg"
    return "mp4"


class HandlerContext(BaseModel):
    """Per-invocation hints passed to a handler."""

    file_exists: bool = False
    options: Optional[MediaOptions] = None


class GalleryItem(BaseModel):
    """One entry of a multi-item result, 1-based."""

    file: str
    type: MediaType
    index: int = Field(ge=1)

    @field_validator("type")
    @classmethod
    def _single_media(cls, value: MediaType) -> MediaType:
        if value == MediaType.GALLERY:
            raise ValueError("gallery items must be video or image")
        return value


class ProcessedMedia(BaseModel):
    """Uniform result of retrieving one URL."""

    original: str
    type: MediaType
    file: Optional[str] = None
    raw: Optional[str] = None
    files: Optional[List[GalleryItem]] = None
    total: Optional[int] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "ProcessedMedia":
        if bool(self.file) == bool(self.raw):
            raise ValueError("exactly one of file or raw must be set")
        if self.type == MediaType.GALLERY:
            if not self.files:
                raise ValueError("gallery results need at least one item")
            if self.total is None:
                self.total = len(self.files)
            if self.total != len(self.files):
                raise ValueError(f"gallery total {self.total} != {len(self.files)} items")
        return self

    def deduplicated(self) -> "ProcessedMedia":
        """Collapse gallery items sharing a filename and recount."""
        if self.type != MediaType.GALLERY or not self.files:
            return self
        seen = set()
        unique: List[GalleryItem] = []
        for item in self.files:
            if item.file in seen:
                continue
            seen.add(item.file)
            unique.append(item)
        return ProcessedMedia(
            original=self.original,
            type=self.type,
            file=self.file,
            files=unique,
            total=len(unique),
        )


class ResolvedURL(BaseModel):
    """A recognized URL with its on-disk stem and ordered handler chain."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    input: str
    file_base_name: str
    service: str = ""
    service_handlers: Tuple[Any, ...] = ()

    @classmethod
    def build(cls, service: str, media_id: str, input: str, handlers: Sequence[Any]) -> "ResolvedURL":
        stem = sanitize_filename(f"{service}-{media_id}")
        return cls(input=input, file_base_name=stem, service=service, service_handlers=tuple(handlers))


def summarize_media(media: ProcessedMedia) -> Dict[str, Any]:
    """Compact log-friendly view of a result."""
    return {
        "type": media.type.value,
        "file": media.file,
        "raw": media.raw,
        "total": media.total,
    }
