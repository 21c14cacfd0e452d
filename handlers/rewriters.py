"""Handlers that only rewrite a URL to an embed-friendly mirror domain."""

from __future__ import annotations

import re
from typing import Pattern

from core import HandlerContext, HandlerFlag, MediaType, ProcessedMedia, ResolvedURL

from .base import BaseHandler


class RewriteHandler(BaseHandler):
    """Substitutes the first match of ``pattern``; never touches disk."""

    flags = frozenset({HandlerFlag.RETURNS_RAW_URL, HandlerFlag.RUN_ON_MESSAGE})
    pattern: Pattern[str] = re.compile(r"$^")
    replacement: str = ""

    def rewrite(self, text: str) -> str:
        rewritten, count = self.pattern.subn(self.replacement, text, count=1)
        if count == 0:
            raise self._fail(f"Nothing to rewrite in {text}")
        return rewritten

    async def handle(self, url: ResolvedURL, context: HandlerContext) -> ProcessedMedia:
        return ProcessedMedia(
            original=url.input,
            raw=self.rewrite(url.input),
            type=self.expected_type,
        )


class BlueskyRewriter(RewriteHandler):
    """bsky.app posts through the bskye.app embed proxy."""

    pattern = re.compile(r"bsky\.app")
    replacement = "bskye.app"

    @property
    def name(self) -> str:
        return "bs"


class TwitterRewriter(RewriteHandler):
    """twitter.com / x.com posts through fxtwitter.com."""

    pattern = re.compile(r"(twitter|x)\.com")
    replacement = "fxtwitter.com"

    @property
    def name(self) -> str:
        return "tw"
