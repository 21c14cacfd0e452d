"""CLI entrypoint: retrieve media for URLs of a known service."""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import logging
import sys
from typing import List, Optional

from config import get_settings
from core import Initiator, MediaOptions, ResolvedURL
from handlers import build_service_handlers, close_handlers
from orchestrator import RetrievalOrchestrator
from outputs import format_options_suffix, format_retrieved
from render import Transcoder
from utils import setup_logger


def _default_id(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:12]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Media retrieval engine CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    ret = sub.add_parser("retrieve")
    ret.add_argument("urls", nargs="+")
    ret.add_argument("--service", default="generic")
    ret.add_argument("--id", dest="media_id", default="", help="Media id (single URL only)")
    ret.add_argument("--user-id", default=None)
    ret.add_argument("--initiator", choices=[i.value for i in Initiator], default=Initiator.INTERACTION.value)
    ret.add_argument("--audio-only", action="store_true")
    ret.add_argument("--audio-format", default=None)
    ret.add_argument("--quality", default=None)
    return parser


async def _retrieve(args: argparse.Namespace) -> int:
    settings = get_settings()
    # Root logger so module loggers and process output share the handlers
    setup_logger(name="", level=logging.DEBUG if settings.media.debug else logging.INFO, log_file="media_engine.log")

    transcoder = Transcoder(settings.media)
    chains = build_service_handlers(settings, transcoder)
    if args.service not in chains:
        print(f"Unknown service {args.service!r}; choose from {', '.join(sorted(chains))}", file=sys.stderr)
        await close_handlers(chains)
        return 2

    urls: List[ResolvedURL] = []
    for raw in args.urls:
        media_id = args.media_id if args.media_id and len(args.urls) == 1 else _default_id(raw)
        urls.append(ResolvedURL.build(args.service, media_id, raw, chains[args.service]))

    options: Optional[MediaOptions] = MediaOptions.from_raw(
        {
            "audio_only": True if args.audio_only else None,
            "audio_format": args.audio_format,
            "quality": args.quality,
        }
    )

    try:
        async with RetrievalOrchestrator(settings.media) as orchestrator:
            report = await orchestrator.retrieve_batch(urls, args.initiator, options, args.user_id)
    finally:
        await close_handlers(chains)

    if not report.results:
        print("Sorry, we couldn't retrieve any media from these URLs.", file=sys.stderr)
        return 1
    print(format_retrieved(report.results, settings.media.host) + format_options_suffix(options))
    return 0


def main() -> None:
    args = build_parser().parse_args()
    if args.command == "retrieve":
        raise SystemExit(asyncio.run(_retrieve(args)))


if __name__ == "__main__":
    main()
