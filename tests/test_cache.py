"""Tests for the result cache."""

from __future__ import annotations

import asyncio

import pytest

from core import MediaType, ProcessedMedia
from storage import CACHE_TTL_SECONDS, ResultCache


class _Clock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def test_set_then_get_returns_value() -> None:
    cache = ResultCache()
    cache.set("https://example.com/a", "value-a")

    assert cache.get("https://example.com/a") == "value-a"
    assert cache.get("https://example.com/b") is None


def test_set_overwrites_existing_entry() -> None:
    cache = ResultCache()
    cache.set("https://example.com/a", "first")
    cache.set("https://example.com/a", "second")

    assert cache.get("https://example.com/a") == "second"
    assert cache.size() == 1


def test_keys_are_url_digests() -> None:
    key = ResultCache.make_key("https://example.com/a")

    assert key == ResultCache.make_key("https://example.com/a")
    assert key != ResultCache.make_key("https://example.com/b")
    assert len(key) == 32


def test_entry_alive_just_before_ttl_and_gone_just_after() -> None:
    clock = _Clock()
    cache = ResultCache(clock=clock)
    cache.set("https://example.com/a", "value")

    clock.now += 23 * 3600 + 59 * 60
    assert cache.get("https://example.com/a") == "value"

    clock.now += 60 + 1
    assert cache.get("https://example.com/a") is None
    assert cache.size() == 0


def test_entry_expires_exactly_at_ttl() -> None:
    clock = _Clock()
    cache = ResultCache(clock=clock)
    cache.set("u", "v")

    clock.now += CACHE_TTL_SECONDS
    assert cache.has("u") is False


def test_sweep_evicts_only_expired_entries() -> None:
    clock = _Clock()
    cache = ResultCache(ttl=10, clock=clock)
    cache.set("old", "1")
    clock.now += 8
    cache.set("new", "2")
    clock.now += 5

    removed = cache.sweep()

    assert removed == 1
    assert cache.size() == 1
    assert cache.get("new") == "2"


def test_media_is_stored_serialized() -> None:
    cache = ResultCache()
    media = ProcessedMedia(original="https://example.com/p/1", type=MediaType.VIDEO, file="ig-1.mp4")

    cache.set_media(media.original, media)

    assert isinstance(cache.get(media.original), str)
    assert cache.get_media(media.original) == media


@pytest.mark.asyncio
async def test_background_sweeper_runs_without_reads() -> None:
    clock = _Clock()
    cache = ResultCache(ttl=5, clock=clock)
    cache.set("a", "1")
    clock.now += 10

    cache.start_sweeper(interval=0.01)
    for _ in range(50):
        if cache.size() == 0:
            break
        await asyncio.sleep(0.01)
    await cache.stop_sweeper()

    assert cache.size() == 0
