"""Bounded-concurrency ffmpeg executor."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

from config.settings import MediaSettings
from core import AudioFormat, MediaOptions
from utils.exceptions import TranscodeFailedError
from utils.files import ensure_dir, exists, remove_quietly
from utils.logger import get_transcoder_logger, log_process_line

from .process import ProcessResult, run_supervised


logger = logging.getLogger(__name__)
ffmpeg_log = get_transcoder_logger()

AUDIO_CODECS: Dict[AudioFormat, str] = {
    AudioFormat.MP3: "libmp3lame",
    AudioFormat.M4A: "aac",
    AudioFormat.WAV: "pcm_s16le",
    AudioFormat.OGG: "libvorbis",
}

ProcessRunner = Callable[..., Awaitable[ProcessResult]]


class Transcoder:
    """Runs at most ``ffmpeg_max_concurrency`` ffmpeg processes at a time."""

    def __init__(self, settings: MediaSettings, *, runner: Optional[ProcessRunner] = None) -> None:
        self.bin = settings.ffmpeg_bin
        self.timeout = float(settings.ffmpeg_timeout)
        self.max_concurrency = max(1, int(settings.ffmpeg_max_concurrency))
        self.tmp_dir = settings.tmp_path
        self.download_dir = settings.download_path
        self._runner = runner or run_supervised
        self._slots = asyncio.Semaphore(self.max_concurrency)
        self._pending = 0
        self._active = 0

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def active(self) -> int:
        return self._active

    def build_command(self, input_path: Path, output_path: Path, options: Optional[MediaOptions] = None) -> List[str]:
        """ffmpeg argv for either audio extraction or a fast video re-encode."""
        args = [self.bin, "-y", "-i", str(input_path)]
        if options is not None and options.audio_only:
            codec = AUDIO_CODECS[options.audio_format or AudioFormat.MP3]
            args += ["-vn", "-c:a", codec, "-q:a", "0"]
        else:
            args += ["-c:v", "libx264", "-preset", "veryfast", "-c:a", "copy"]
        args += ["-hide_banner", "-v", "warning", str(output_path)]
        return args

    async def transcode(self, file_name: str, options: Optional[MediaOptions] = None) -> Path:
        """
        Transcode ``tmp_dir/file_name`` into ``download_dir/file_name``.

        The staged input is removed afterwards whatever the outcome.

        Raises:
            TranscodeFailedError: nonzero exit, timeout, spawn failure or
                missing output file
        """
        input_path = self.tmp_dir / file_name
        output_path = ensure_dir(self.download_dir) / file_name
        cmd = self.build_command(input_path, output_path, options)

        logger.info("Queueing FFmpeg operation for %s (%s active, %s waiting)", file_name, self._active, self._pending)
        logger.debug("Command: %s", " ".join(cmd))

        try:
            self._pending += 1
            try:
                await self._slots.acquire()
            finally:
                self._pending -= 1
            self._active += 1
            try:
                return await self._run(file_name, cmd, output_path)
            finally:
                self._active -= 1
                self._slots.release()
        finally:
            await remove_quietly(input_path)

    async def _run(self, file_name: str, cmd: List[str], output_path: Path) -> Path:
        logger.info("Transcoding %s", file_name)
        try:
            result = await self._runner(
                cmd,
                timeout=self.timeout,
                on_stdout=lambda line: log_process_line(ffmpeg_log, line, stream="stdout"),
                on_stderr=lambda line: log_process_line(ffmpeg_log, line, stream="stderr"),
            )
        except OSError as exc:
            raise TranscodeFailedError(f"FFmpeg process error: {exc}") from exc

        if result.timed_out:
            raise TranscodeFailedError(
                f"FFmpeg timed out after {self.timeout:g}s",
                returncode=result.returncode,
                timed_out=True,
            )

        output_exists = await exists(output_path)
        if result.returncode == 0 and output_exists:
            logger.info("Transcoded %s", file_name)
            return output_path

        reason = f"FFmpeg failed with code {result.returncode}"
        if not output_exists:
            reason += " (no output file)"
        ffmpeg_log.warning("Transcoding failed: %s", reason)
        raise TranscodeFailedError(reason, returncode=result.returncode)
