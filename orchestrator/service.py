"""Retrieval orchestration: handler fallback, memoization and admission control."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

from config.settings import MediaSettings
from core import (
    HandlerContext,
    Initiator,
    MediaOptions,
    ProcessedMedia,
    ResolvedURL,
    summarize_media,
    target_extension,
)
from storage import ResultCache
from utils.exceptions import AllHandlersFailedError, InvalidInputError, NoHandlersAvailableError
from utils.files import exists
from utils.validation import is_valid_media_type, is_valid_url

from .queue import AdmissionQueue


logger = logging.getLogger(__name__)

OptionsInput = Union[MediaOptions, Mapping[str, Any], None]


@dataclass
class HandlerAttempt:
    """Outcome of one handler invocation: either media or an error message."""

    handler: str
    media: Optional[ProcessedMedia] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.media is not None and self.error is None


@dataclass
class BatchReport:
    """Per-batch accounting, so callers can tell "nothing matched" from "all failed"."""

    requested: int = 0
    results: List[ProcessedMedia] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.results) + len(self.failed)

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and not self.results


class RetrievalOrchestrator:
    """Turns resolved URLs into stored media through ordered handler chains."""

    def __init__(
        self,
        settings: MediaSettings,
        *,
        cache: Optional[ResultCache] = None,
        admission: Optional[AdmissionQueue] = None,
    ) -> None:
        self.settings = settings
        self.cache = cache or ResultCache(ttl=settings.cache_ttl, debug=settings.debug)
        self.admission = admission or AdmissionQueue(settings.max_user_queue_size)

    async def __aenter__(self) -> "RetrievalOrchestrator":
        self.cache.start_sweeper(self.settings.cache_sweep_interval)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cache.stop_sweeper()

    async def retrieve_one(
        self,
        url: ResolvedURL,
        initiator: Union[Initiator, str],
        options: OptionsInput = None,
    ) -> ProcessedMedia:
        """
        Retrieve one URL, trying eligible handlers strictly in order.

        Raises:
            InvalidInputError: ``url.input`` is not a URL
            NoHandlersAvailableError: no handler runs for this initiator
            AllHandlersFailedError: every eligible handler failed
        """
        if not is_valid_url(url.input):
            raise InvalidInputError(f"Invalid URL: {url.input}", url=url.input)

        initiator = Initiator(initiator)
        validated = MediaOptions.from_raw(options)

        cached = self.cache.get_media(url.input)
        if cached is not None:
            logger.debug("Retrieved cached result for %s", url.input)
            return cached

        logger.info("Retrieving %s", url.file_base_name)
        handlers = [h for h in url.service_handlers if h.runs_on(initiator)]
        if not handlers:
            raise NoHandlersAvailableError(
                f"No handlers found for {url.file_base_name} initiated by {initiator.value}",
                initiator=initiator.value,
            )

        attempts: List[HandlerAttempt] = []
        for handler in handlers:
            attempt = await self._attempt(handler, url, validated)
            attempts.append(attempt)
            if not attempt.succeeded:
                logger.warning("Failed to retrieve %s with %s: %s", url.file_base_name, attempt.handler, attempt.error)
                continue

            media = attempt.media
            if handler.returns_raw_url:
                media = ProcessedMedia(original=url.input, raw=media.raw or media.file, type=media.type)
            else:
                media = media.deduplicated()
            self.cache.set_media(url.input, media)
            logger.info("Retrieved %s with %s: %s", url.file_base_name, attempt.handler, summarize_media(media))
            return media

        message = f"No handlers succeeded for {url.file_base_name}"
        logger.warning(message)
        raise AllHandlersFailedError(message, attempts=attempts, url=url.input)

    async def _attempt(self, handler, url: ResolvedURL, options: Optional[MediaOptions]) -> HandlerAttempt:
        try:
            context = await self._context_for(handler, url, options)
            result = await handler.handle(url, context)
            media = result if isinstance(result, ProcessedMedia) else ProcessedMedia.model_validate(result)
        except Exception as exc:
            logger.debug("Handler %s raised", handler.name, exc_info=True)
            return HandlerAttempt(handler=handler.name, error=str(exc) or type(exc).__name__)

        if not is_valid_media_type(media.type):
            return HandlerAttempt(handler=handler.name, error=f"Invalid media type: {media.type}")
        return HandlerAttempt(handler=handler.name, media=media)

    async def _context_for(self, handler, url: ResolvedURL, options: Optional[MediaOptions]) -> HandlerContext:
        """Existence hint for the handler's target file, checked before it runs."""
        if handler.returns_raw_url:
            return HandlerContext(file_exists=False, options=options)
        extension = target_extension(handler.expected_type, options)
        file_name = f"{url.file_base_name}.{extension}"
        file_exists = await exists(self.settings.download_path / file_name)
        if file_exists:
            logger.info("%s already exists", file_name)
        return HandlerContext(file_exists=file_exists, options=options)

    async def retrieve_multiple(
        self,
        urls: Sequence[ResolvedURL],
        initiator: Union[Initiator, str],
        options: OptionsInput = None,
        user_id: Optional[str] = None,
    ) -> List[ProcessedMedia]:
        """Retrieve a batch concurrently, returning only the successes."""
        report = await self.retrieve_batch(urls, initiator, options, user_id)
        return report.results

    async def retrieve_batch(
        self,
        urls: Sequence[ResolvedURL],
        initiator: Union[Initiator, str],
        options: OptionsInput = None,
        user_id: Optional[str] = None,
    ) -> BatchReport:
        """
        Retrieve a batch under the user's admission limit.

        URLs beyond the per-user cap, or refused a slot, are skipped without
        invoking any handler. Every reserved slot is released on exit.
        """
        urls = list(urls)
        report = BatchReport(requested=len(urls))
        if not urls:
            return report

        logger.info("Processing %d URLs", len(urls))
        validated = MediaOptions.from_raw(options)

        admitted = urls
        reserved: List[str] = []
        if user_id is not None:
            cap = self.admission.max_size
            if len(urls) > cap:
                logger.warning(
                    "User %s exceeded queue limit. Processing first %d URLs, skipping %d",
                    user_id, cap, len(urls) - cap,
                )
                report.skipped.extend(url.input for url in urls[cap:])
                urls = urls[:cap]

            admitted = []
            for url in urls:
                if not self.admission.try_reserve(user_id, url.file_base_name):
                    report.skipped.append(url.input)
                    continue
                if url.file_base_name not in reserved:
                    reserved.append(url.file_base_name)
                admitted.append(url)

        try:
            outcomes = await asyncio.gather(
                *(self.retrieve_one(url, initiator, validated) for url in admitted),
                return_exceptions=True,
            )
            for url, outcome in zip(admitted, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Could not retrieve %s: %s", url.input, outcome)
                    report.failed.append(url.input)
                else:
                    report.results.append(outcome)
            logger.info("Successfully processed %d/%d URLs", len(report.results), len(admitted))
        finally:
            for item_id in reserved:
                self.admission.release(user_id, item_id)

        return report
