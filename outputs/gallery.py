"""Paginated gallery state keyed by reply message."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from core import MediaType, ProcessedMedia


logger = logging.getLogger(__name__)

GALLERY_COOLDOWN_SECONDS = 1.0
NAVIGATION_ACTIONS = ("prev", "next")


@dataclass
class GalleryState:
    """Position of one reply inside its gallery."""

    current_index: int
    media: ProcessedMedia
    last_interaction: float

    @property
    def total(self) -> int:
        return len(self.media.files or [])


class GalleryNavigator:
    """Clamped prev/next navigation with a minimum interval between steps."""

    def __init__(
        self,
        *,
        cooldown: float = GALLERY_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown = float(cooldown)
        self._clock = clock
        self._states: Dict[str, GalleryState] = {}

    def register(self, reply_id: str, media: ProcessedMedia) -> Optional[GalleryState]:
        """Track a reply when ``media`` is a gallery with more than one item."""
        if media.type != MediaType.GALLERY or not media.files or len(media.files) < 2:
            return None
        state = GalleryState(current_index=0, media=media, last_interaction=self._clock())
        self._states[reply_id] = state
        return state

    def get(self, reply_id: str) -> Optional[GalleryState]:
        return self._states.get(reply_id)

    def forget(self, reply_id: str) -> None:
        self._states.pop(reply_id, None)

    def navigate(self, reply_id: str, action: str) -> Optional[GalleryState]:
        """
        Move one step. Returns None while throttled.

        Raises:
            KeyError: unknown reply
            ValueError: unknown action
        """
        if action not in NAVIGATION_ACTIONS:
            raise ValueError(f"Unknown gallery action: {action}")
        state = self._states[reply_id]

        now = self._clock()
        if now - state.last_interaction < self.cooldown:
            logger.debug("Interaction cooldown for gallery %s", reply_id)
            return None

        last = max(0, state.total - 1)
        if action == "next":
            state.current_index = min(state.current_index + 1, last)
        else:
            state.current_index = max(state.current_index - 1, 0)
        state.last_interaction = now
        logger.info("Navigated gallery %s %s, index %d", reply_id, action, state.current_index)
        return state

    def current_view(self, reply_id: str) -> ProcessedMedia:
        """The gallery with ``file`` pointing at the current item."""
        state = self._states[reply_id]
        item = state.media.files[state.current_index]
        return state.media.model_copy(update={"file": item.file})

    def controls(self, reply_id: str) -> Tuple[bool, bool]:
        """``(prev_disabled, next_disabled)`` for the current position."""
        state = self._states[reply_id]
        return state.current_index == 0, state.current_index >= state.total - 1


def parse_custom_id(custom_id: str) -> Tuple[str, str]:
    """Split a button id like ``next_1234`` into ``(action, reply_id)``."""
    action, _, reply_id = str(custom_id or "").partition("_")
    return action, reply_id
