"""Non-blocking filesystem helpers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Union


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


async def exists(path: PathLike) -> bool:
    """Existence check that runs off the event loop."""
    return await asyncio.to_thread(Path(path).exists)


async def remove_quietly(path: PathLike) -> bool:
    """Best-effort delete. Failures are logged, never raised."""
    try:
        await asyncio.to_thread(Path(path).unlink)
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("Failed to remove temporary file %s: %s", path, exc)
        return False
    logger.debug("Removed temporary file %s", path)
    return True


def ensure_dir(path: PathLike) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target
