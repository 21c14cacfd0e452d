"""Per-user admission control for in-flight retrievals."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, Set


logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 3


class AdmissionQueue:
    """Bounded set of in-flight item IDs per user. Empty sets are dropped."""

    def __init__(self, max_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        self.max_size = max(1, int(max_size))
        self._users: Dict[str, Set[str]] = {}
        self._lock = Lock()

    def try_reserve(self, user_id: str, item_id: str) -> bool:
        """Reserve a slot. Returns False, leaving state untouched, when the user is full."""
        with self._lock:
            items = self._users.setdefault(user_id, set())
            if len(items) >= self.max_size:
                logger.warning("User %s has reached queue limit of %s items", user_id, self.max_size)
                return False
            items.add(item_id)
            size = len(items)
        logger.info("Added item %s to user %s's queue (%s/%s)", item_id, user_id, size, self.max_size)
        return True

    def release(self, user_id: str, item_id: str) -> None:
        with self._lock:
            items = self._users.get(user_id)
            if items is None:
                return
            items.discard(item_id)
            size = len(items)
            if not items:
                del self._users[user_id]
        logger.info("Removed item %s from user %s's queue (%s/%s)", item_id, user_id, size, self.max_size)

    def size(self, user_id: str) -> int:
        with self._lock:
            items = self._users.get(user_id)
            return len(items) if items else 0

    def tracked_users(self) -> int:
        with self._lock:
            return len(self._users)
