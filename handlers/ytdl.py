"""General downloader handler backed by a yt-dlp process."""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, List, Optional

from config.settings import MediaSettings
from core import HandlerContext, MediaOptions, MediaType, ProcessedMedia, ResolvedURL, VideoQuality
from render.process import ProcessResult, run_supervised
from utils.exceptions import ProcessAbortedError
from utils.files import ensure_dir
from utils.logger import get_downloader_logger, log_process_line

from .base import DownloadingHandler


logger = logging.getLogger(__name__)
ytdl_log = get_downloader_logger()

UNSUPPORTED_URL = "Unsupported URL"


class YtdlHandler(DownloadingHandler):
    """Shells out to yt-dlp and reads the produced filename from its stdout."""

    def __init__(
        self,
        settings: MediaSettings,
        *,
        runner: Optional[Callable[..., Awaitable[ProcessResult]]] = None,
        **kwargs,
    ):
        super().__init__(settings, **kwargs)
        self.bin = settings.ytdl_bin
        self._runner = runner or run_supervised

    @property
    def name(self) -> str:
        return "ytdl"

    def build_command(self, url: ResolvedURL, options: Optional[MediaOptions]) -> List[str]:
        args = [
            self.bin,
            url.input,
            "-P", str(self.settings.download_path.resolve()),
            "-o", f"{url.file_base_name}.%(ext)s",
            "--max-filesize", str(self.settings.max_file_size),
            "--newline",
        ]
        if options is not None and options.audio_only:
            args += ["-x", "--audio-format", options.audio_extension, "-f", "ba/b"]
            return args

        sort_keys = "codec:h264"
        if options is not None and options.quality and options.quality != VideoQuality.BEST:
            sort_keys = f"res:{options.quality.value},{sort_keys}"
        args += ["-S", sort_keys, "-f", "bv*+ba/b"]
        return args

    def file_pattern(self, url: ResolvedURL, options: Optional[MediaOptions]) -> "re.Pattern[str]":
        """Output lines naming the final file. Audio runs must end in the requested format."""
        extension = re.escape(options.audio_extension) if options and options.audio_only else "[a-z0-9]+"
        return re.compile(rf'({re.escape(url.file_base_name)}\.{extension})(?:"|\s|$)')

    async def handle(self, url: ResolvedURL, context: HandlerContext) -> ProcessedMedia:
        if context.file_exists:
            return self.existing_result(url, context.options)

        ensure_dir(self.settings.download_dir)
        cmd = self.build_command(url, context.options)
        pattern = self.file_pattern(url, context.options)
        found: List[str] = []

        def on_stdout(line: str) -> None:
            log_process_line(ytdl_log, line, stream="stdout")
            if not found:
                match = pattern.search(line)
                if match:
                    found.append(match.group(1))

        def on_stderr(line: str) -> None:
            log_process_line(ytdl_log, line, stream="stderr")
            if UNSUPPORTED_URL in line:
                raise ProcessAbortedError(UNSUPPORTED_URL, handler=self.name)

        logger.info("Spawning `%s`", " ".join(cmd))
        result = await self._runner(cmd, on_stdout=on_stdout, on_stderr=on_stderr)
        ytdl_log.info("Exited with code %s", result.returncode)

        if not found:
            raise self._fail("File is missing")
        return ProcessedMedia(original=url.input, type=MediaType.VIDEO, file=found[0])
