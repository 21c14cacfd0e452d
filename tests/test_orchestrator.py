from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pytest

from config.settings import MediaSettings
from core import (
    GalleryItem,
    HandlerContext,
    HandlerFlag,
    Initiator,
    MediaType,
    ProcessedMedia,
    ResolvedURL,
)
from handlers.base import BaseHandler
from orchestrator import AdmissionQueue, RetrievalOrchestrator
from storage import ResultCache
from utils.exceptions import AllHandlersFailedError, InvalidInputError, NoHandlersAvailableError


BOTH = (HandlerFlag.RUN_ON_MESSAGE, HandlerFlag.RUN_ON_INTERACTION)


class FakeHandler(BaseHandler):
    def __init__(
        self,
        name: str,
        *,
        result=None,
        error: Optional[Exception] = None,
        flags: Iterable[HandlerFlag] = BOTH,
        expected_type: MediaType = MediaType.VIDEO,
        call_log: Optional[List[str]] = None,
        before: Optional[Callable] = None,
    ) -> None:
        super().__init__()
        self._name = name
        self.result = result
        self.error = error
        self.flags = frozenset(flags)
        self.expected_type = expected_type
        self.call_log = call_log
        self.before = before
        self.calls = 0
        self.contexts: List[HandlerContext] = []

    @property
    def name(self) -> str:
        return self._name

    async def handle(self, url: ResolvedURL, context: HandlerContext):
        self.calls += 1
        self.contexts.append(context)
        if self.call_log is not None:
            self.call_log.append(self._name)
        if self.before is not None:
            await self.before()
        if self.error is not None:
            raise self.error
        if callable(self.result):
            return self.result(url)
        return self.result


def _video(url: ResolvedURL) -> ProcessedMedia:
    return ProcessedMedia(original=url.input, type=MediaType.VIDEO, file=f"{url.file_base_name}.mp4")


def _url(media_id: str, handlers, service: str = "instagram") -> ResolvedURL:
    return ResolvedURL.build(service, media_id, f"https://example.com/p/{media_id}", handlers)


def _orchestrator(tmp_path: Path, **kwargs) -> RetrievalOrchestrator:
    settings = MediaSettings(download_dir=str(tmp_path / "downloads"), tmp_dir=str(tmp_path / "tmp"))
    return RetrievalOrchestrator(settings, **kwargs)


@pytest.mark.asyncio
async def test_first_successful_handler_wins_in_order(tmp_path: Path) -> None:
    calls: List[str] = []
    a = FakeHandler("a", error=RuntimeError("boom"), call_log=calls)
    b = FakeHandler("b", result=_video, call_log=calls)
    c = FakeHandler("c", result=_video, call_log=calls)
    svc = _orchestrator(tmp_path)

    media = await svc.retrieve_one(_url("1", [a, b, c]), Initiator.INTERACTION)

    assert calls == ["a", "b"]
    assert media.file == "instagram-1.mp4"
    assert c.calls == 0


@pytest.mark.asyncio
async def test_all_handlers_failing_raises_with_attempts(tmp_path: Path) -> None:
    a = FakeHandler("a", error=RuntimeError("first"))
    b = FakeHandler("b", error=ValueError("second"))
    svc = _orchestrator(tmp_path)

    with pytest.raises(AllHandlersFailedError) as info:
        await svc.retrieve_one(_url("1", [a, b]), "interaction")

    attempts = info.value.attempts
    assert [attempt.handler for attempt in attempts] == ["a", "b"]
    assert [attempt.error for attempt in attempts] == ["first", "second"]
    assert not any(attempt.succeeded for attempt in attempts)


@pytest.mark.asyncio
async def test_invalid_url_is_rejected_before_handlers(tmp_path: Path) -> None:
    handler = FakeHandler("a", result=_video)
    url = ResolvedURL.build("generic", "1", "not a url", [handler])

    with pytest.raises(InvalidInputError):
        await _orchestrator(tmp_path).retrieve_one(url, Initiator.MESSAGE)
    assert handler.calls == 0


@pytest.mark.asyncio
async def test_no_eligible_handlers(tmp_path: Path) -> None:
    handler = FakeHandler("a", result=_video, flags=[HandlerFlag.RUN_ON_INTERACTION])

    with pytest.raises(NoHandlersAvailableError) as info:
        await _orchestrator(tmp_path).retrieve_one(_url("1", [handler]), Initiator.MESSAGE)
    assert info.value.initiator == "message"
    assert handler.calls == 0


@pytest.mark.asyncio
async def test_initiator_filters_handlers(tmp_path: Path) -> None:
    message_only = FakeHandler("m", result=_video, flags=[HandlerFlag.RUN_ON_MESSAGE])
    interaction = FakeHandler("i", result=_video, flags=[HandlerFlag.RUN_ON_INTERACTION])

    await _orchestrator(tmp_path).retrieve_one(_url("1", [message_only, interaction]), Initiator.INTERACTION)

    assert message_only.calls == 0
    assert interaction.calls == 1


@pytest.mark.asyncio
async def test_repeat_retrieval_is_served_from_cache(tmp_path: Path) -> None:
    handler = FakeHandler("a", result=_video)
    svc = _orchestrator(tmp_path)
    url = _url("1", [handler])

    first = await svc.retrieve_one(url, Initiator.INTERACTION)
    second = await svc.retrieve_one(url, Initiator.INTERACTION)

    assert first == second
    assert handler.calls == 1


@pytest.mark.asyncio
async def test_failures_are_not_cached(tmp_path: Path) -> None:
    handler = FakeHandler("a", error=RuntimeError("down"))
    svc = _orchestrator(tmp_path)
    url = _url("1", [handler])

    for _ in range(2):
        with pytest.raises(AllHandlersFailedError):
            await svc.retrieve_one(url, Initiator.INTERACTION)

    assert handler.calls == 2
    assert svc.cache.size() == 0


@pytest.mark.asyncio
async def test_expired_cache_entry_invokes_handlers_again(tmp_path: Path) -> None:
    now = [0.0]
    handler = FakeHandler("a", result=_video)
    svc = _orchestrator(tmp_path, cache=ResultCache(clock=lambda: now[0]))
    url = _url("1", [handler])

    await svc.retrieve_one(url, Initiator.INTERACTION)
    now[0] = 23 * 3600 + 59 * 60
    await svc.retrieve_one(url, Initiator.INTERACTION)
    assert handler.calls == 1

    now[0] = 24 * 3600 + 1
    await svc.retrieve_one(url, Initiator.INTERACTION)
    assert handler.calls == 2


@pytest.mark.asyncio
async def test_raw_url_handler_result_is_wrapped(tmp_path: Path) -> None:
    def rewrite(url: ResolvedURL) -> ProcessedMedia:
        return ProcessedMedia(original="ignored", type=MediaType.VIDEO, raw="https://fxtwitter.com/a/status/1")

    handler = FakeHandler(
        "tw",
        result=rewrite,
        flags=[HandlerFlag.RETURNS_RAW_URL, HandlerFlag.RUN_ON_MESSAGE],
    )
    url = ResolvedURL.build("twitter", "1", "https://x.com/a/status/1", [handler])

    media = await _orchestrator(tmp_path).retrieve_one(url, Initiator.MESSAGE)

    assert media.raw == "https://fxtwitter.com/a/status/1"
    assert media.original == "https://x.com/a/status/1"
    assert media.file is None
    assert handler.contexts[0].file_exists is False


@pytest.mark.asyncio
async def test_dict_results_are_validated(tmp_path: Path) -> None:
    bad = FakeHandler("bad", result={"original": "u", "type": "audio", "file": "x.mp3"})
    good = FakeHandler("good", result=lambda url: {"original": url.input, "type": "image", "file": "x.jpg"})

    media = await _orchestrator(tmp_path).retrieve_one(_url("1", [bad, good]), Initiator.INTERACTION)

    assert media.type == MediaType.IMAGE
    assert bad.calls == 1


@pytest.mark.asyncio
async def test_gallery_results_are_deduplicated(tmp_path: Path) -> None:
    def gallery(url: ResolvedURL) -> ProcessedMedia:
        return ProcessedMedia(
            original=url.input,
            type=MediaType.GALLERY,
            file="g_1.jpg",
            files=[
                GalleryItem(file="g_1.jpg", type=MediaType.IMAGE, index=1),
                GalleryItem(file="g_1.jpg", type=MediaType.IMAGE, index=2),
                GalleryItem(file="g_3.mp4", type=MediaType.VIDEO, index=3),
            ],
        )

    media = await _orchestrator(tmp_path).retrieve_one(_url("1", [FakeHandler("g", result=gallery)]), "interaction")

    assert media.total == 2
    assert len(media.files) == 2
    assert len({item.file for item in media.files}) == len(media.files)


@pytest.mark.asyncio
async def test_existing_file_is_reported_to_handler(tmp_path: Path) -> None:
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    (downloads / "instagram-1.mp3").write_bytes(b"x")
    handler = FakeHandler("a", result=_video)
    svc = _orchestrator(tmp_path)

    await svc.retrieve_one(_url("1", [handler]), Initiator.INTERACTION, {"audio_only": True})
    await svc.retrieve_one(_url("2", [handler]), Initiator.INTERACTION, {"audio_only": True})

    assert handler.contexts[0].file_exists is True
    assert handler.contexts[0].options.audio_only is True
    assert handler.contexts[1].file_exists is False


@pytest.mark.asyncio
async def test_invalid_options_are_dropped_before_handlers(tmp_path: Path) -> None:
    handler = FakeHandler("a", result=_video)

    await _orchestrator(tmp_path).retrieve_one(
        _url("1", [handler]), Initiator.INTERACTION, {"audio_format": "flac", "quality": "9000"}
    )

    assert handler.contexts[0].options is None


@pytest.mark.asyncio
async def test_batch_isolates_failures(tmp_path: Path) -> None:
    ok = FakeHandler("ok", result=_video)
    broken = FakeHandler("broken", error=RuntimeError("nope"))
    urls = [_url("x", [ok]), _url("y", [broken]), _url("z", [ok])]

    report = await _orchestrator(tmp_path).retrieve_batch(urls, Initiator.INTERACTION)

    assert [m.file for m in report.results] == ["instagram-x.mp4", "instagram-z.mp4"]
    assert report.failed == ["https://example.com/p/y"]
    assert report.attempted == 3
    assert report.all_failed is False


@pytest.mark.asyncio
async def test_empty_batch(tmp_path: Path) -> None:
    svc = _orchestrator(tmp_path)

    assert await svc.retrieve_multiple([], Initiator.INTERACTION, None, "u1") == []


@pytest.mark.asyncio
async def test_user_batch_is_capped_at_queue_size(tmp_path: Path) -> None:
    handlers = [FakeHandler(f"h{i}", result=_video) for i in range(5)]
    urls = [_url(str(i), [handlers[i]]) for i in range(5)]
    admission = AdmissionQueue(max_size=3)
    svc = _orchestrator(tmp_path, admission=admission)

    report = await svc.retrieve_batch(urls, Initiator.INTERACTION, None, "u1")

    assert len(report.results) == 3
    assert [h.calls for h in handlers] == [1, 1, 1, 0, 0]
    assert report.skipped == [urls[3].input, urls[4].input]
    assert admission.size("u1") == 0
    assert admission.tracked_users() == 0


@pytest.mark.asyncio
async def test_urls_refused_a_slot_are_skipped(tmp_path: Path) -> None:
    admission = AdmissionQueue(max_size=3)
    admission.try_reserve("u1", "other-a")
    admission.try_reserve("u1", "other-b")
    handlers = [FakeHandler(f"h{i}", result=_video) for i in range(2)]
    urls = [_url(str(i), [handlers[i]]) for i in range(2)]

    results = await _orchestrator(tmp_path, admission=admission).retrieve_multiple(
        urls, Initiator.INTERACTION, None, "u1"
    )

    assert len(results) == 1
    assert handlers[1].calls == 0
    assert admission.size("u1") == 2


@pytest.mark.asyncio
async def test_slots_released_when_every_retrieval_fails(tmp_path: Path) -> None:
    admission = AdmissionQueue(max_size=3)
    urls = [_url(str(i), [FakeHandler("x", error=RuntimeError("down"))]) for i in range(2)]

    report = await _orchestrator(tmp_path, admission=admission).retrieve_batch(urls, "interaction", None, "u1")

    assert report.results == []
    assert report.all_failed is True
    assert admission.tracked_users() == 0


@pytest.mark.asyncio
async def test_batch_runs_concurrently(tmp_path: Path) -> None:
    second_started = asyncio.Event()

    async def wait_for_second() -> None:
        await asyncio.wait_for(second_started.wait(), timeout=2)

    async def mark_started() -> None:
        second_started.set()

    first = FakeHandler("first", result=_video, before=wait_for_second)
    second = FakeHandler("second", result=_video, before=mark_started)

    results = await _orchestrator(tmp_path).retrieve_multiple(
        [_url("1", [first]), _url("2", [second])], Initiator.INTERACTION
    )

    assert len(results) == 2


@pytest.mark.asyncio
async def test_context_manager_runs_sweeper(tmp_path: Path) -> None:
    svc = _orchestrator(tmp_path)

    async with svc as running:
        assert running is svc
        assert svc.cache._sweeper is not None

    assert svc.cache._sweeper is None
