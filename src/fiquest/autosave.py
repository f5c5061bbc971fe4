from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .scheduling import ScheduledTask, Scheduler

if TYPE_CHECKING:  # pragma: no cover
    from .session import SessionManager

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 2


class AutoSaver:
    """Periodic save plus the unload and hidden-visibility triggers.

    Every trigger calls the same ``save_player_data``; it is idempotent, so two
    triggers firing together just write the same state twice.
    """

    def __init__(self, session: "SessionManager", scheduler: Scheduler, interval_minutes: float = DEFAULT_INTERVAL_MINUTES) -> None:
        self.session = session
        self.scheduler = scheduler
        self.interval_seconds = interval_minutes * 60
        self._task: Optional[ScheduledTask] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.cancelled

    def start(self) -> None:
        if self.running:
            return
        self._task = self.scheduler.call_every(self.interval_seconds, self.save, name="autosave")
        logger.debug("Autosave every %.0fs", self.interval_seconds)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def save(self) -> bool:
        if not self.session.is_logged_in():
            return False
        logger.debug("Autosaving")
        return self.session.save_player_data()

    def on_unload(self) -> bool:
        return self.save()

    def on_visibility_change(self, state: str) -> bool:
        if state == "hidden":
            return self.save()
        return False
