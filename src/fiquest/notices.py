from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

logger = logging.getLogger(__name__)

LEVELS = ("info", "warning", "error", "success")
# Older notices drop out of the history once this many have been shown
HISTORY_LIMIT = 200


@dataclass
class Notice:
    """A message meant for the person at the keyboard.

    Delivery instructions, import outcomes and logout prompts all end up here;
    whatever front end is attached decides how to show them.
    """

    text: str
    level: str = "info"  # info | warning | error | success
    timestamp: float = field(default_factory=lambda: time.time())


class NoticeBoard:
    """Queue of pending notices plus a bounded history of recent ones.

    Scheduled callbacks may post from timer threads, so access is locked.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        self._lock = threading.RLock()
        self._pending: List[Notice] = []
        self._history: Deque[Notice] = deque(maxlen=history_limit)

    def show(self, text: str, level: str = "info") -> Notice:
        if level not in LEVELS:
            logger.debug("Unknown notice level %r; using info", level)
            level = "info"
        notice = Notice(text=text, level=level)
        with self._lock:
            self._pending.append(notice)
            self._history.append(notice)
        return notice

    def drain(self) -> List[Notice]:
        with self._lock:
            items = list(self._pending)
            self._pending.clear()
            return items

    def history(self) -> List[Notice]:
        with self._lock:
            return list(self._history)

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    @property
    def last_message(self) -> Optional[Notice]:
        with self._lock:
            return self._history[-1] if self._history else None
