"""External process supervision and transcoding."""

from .process import ProcessResult, run_supervised
from .transcoder import AUDIO_CODECS, Transcoder

__all__ = [
    "AUDIO_CODECS",
    "ProcessResult",
    "Transcoder",
    "run_supervised",
]
