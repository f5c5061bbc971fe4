from __future__ import annotations

import atexit
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .autosave import AutoSaver
from .clock import Clock
from .config import Settings
from .delivery import DeliveryHost, DeliveryResult, DirectoryHost, FileDeliveryChain, HostCapabilities
from .errors import FiquestError
from .notices import NoticeBoard
from .persistence.codec import content_type
from .persistence.store import JsonFileStore, KeyValueStore, MemoryStore
from .persistence.transfer import DataTransfer, ImportResult
from .scheduling import ScheduledTask, Scheduler, ThreadingScheduler
from .session import SessionManager

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


@dataclass
class LogoutResult:
    status: str  # scheduled | cleared | cancelled
    filename: Optional[str] = None
    delivery: Optional[DeliveryResult] = None


class FiquestApp:
    """The one session context: store, session, transfer, delivery and autosave.

    Built once at start-up and handed to whatever front end drives it. Every
    collaborator that touches the host can be injected.
    """

    LOGOUT_PROMPT = (
        "LOGOUT WARNING\n\n"
        "Logging out will clear ALL data from this device.\n"
        "To continue playing later, you'll need to import your save file.\n\n"
        "Would you like to create/update your save file before logging out?"
    )
    LOGOUT_WITHOUT_SAVE_PROMPT = (
        "Are you sure you want to logout without saving? "
        "All progress will be lost unless you have a save file."
    )
    NOTICE_LOGGED_OUT = (
        "Logged out successfully!\n\n"
        "All data has been cleared from this device.\n"
        "To continue playing, you'll need to import your save file."
    )

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        host: Optional[DeliveryHost] = None,
        capabilities: Optional[HostCapabilities] = None,
        notices: Optional[NoticeBoard] = None,
        register_exit: bool = True,
    ) -> None:
        self.settings = settings or Settings.load()
        self.clock = clock or Clock(self.settings.timezone)
        self.store = store if store is not None else self._build_store()
        self.scheduler = scheduler or ThreadingScheduler()
        self.notices = notices or NoticeBoard()
        self.session = SessionManager(self.store, self.clock)
        self.transfer = DataTransfer(self.session, self.settings.exporter_name)

        delivery = self.settings.delivery
        if host is None:
            host = DirectoryHost(delivery.resolved_download_dir())
            capabilities = capabilities or DirectoryHost.capabilities()
        self.host = host
        self.capabilities = capabilities or HostCapabilities(has_blob_download=True)
        self.delivery = FileDeliveryChain(
            host,
            self.capabilities,
            self.scheduler,
            self.notices,
            revoke_delay=delivery.revoke_delay,
            instructions_delay=delivery.instructions_delay,
        )
        self.autosaver = AutoSaver(self.session, self.scheduler, self.settings.autosave.interval_minutes)
        self._register_exit = register_exit
        self._exit_registered = False
        self._logout_task: Optional[ScheduledTask] = None

    def _build_store(self) -> KeyValueStore:
        storage = self.settings.storage
        if storage.backend == "memory":
            return MemoryStore(quota_bytes=storage.quota_bytes)
        if storage.backend == "file":
            return JsonFileStore(storage.resolved_path(), quota_bytes=storage.quota_bytes)
        raise ValueError(f"Unknown storage backend: {storage.backend}")

    # --- Lifecycle ---
    def start(self) -> bool:
        """Load whichever player was active last, then start autosave. True if one was loaded."""
        loaded = self.session.start()
        if self.settings.autosave.enabled:
            self.autosaver.start()
        if self._register_exit and not self._exit_registered:
            atexit.register(self._on_exit)
            self._exit_registered = True
        logger.info("FIQuest started (player loaded: %s)", loaded)
        return loaded

    def _on_exit(self) -> None:
        self.autosaver.on_unload()

    def shutdown(self) -> None:
        """Save, stop timers and release delivery resources. A pending logout completes now."""
        if self._logout_task is not None and not self._logout_task.done:
            self._logout_task.cancel()
            self._finish_logout()
        self.autosaver.on_unload()
        self.autosaver.stop()
        self.delivery.close()
        self.scheduler.shutdown()
        if self._exit_registered:
            atexit.unregister(self._on_exit)
            self._exit_registered = False
        logger.info("FIQuest shut down")

    # --- Export/import ---
    def export_to_file(self, fmt: str = "json", obfuscate: bool = False, trigger: Optional[str] = None) -> DeliveryResult:
        """Export the active player and deliver the file. Raises like ``DataTransfer.export_all``."""
        payload = self.transfer.export_all(fmt, obfuscate, trigger)
        filename = self.transfer.export_filename(fmt, obfuscate)
        return self.delivery.deliver(payload, filename, content_type(fmt))

    def import_text(self, text: str, is_obfuscated: bool = False) -> ImportResult:
        result = self.transfer.import_all(text, is_obfuscated)
        if result.success:
            self.notices.show(f"Welcome back, {result.player_name}! Your data has been imported.", level="success")
            for warning in result.warnings:
                self.notices.show(warning, level="warning")
        else:
            self.notices.show(result.message, level="error")
        return result

    # --- Logout ---
    @property
    def logout_pending(self) -> bool:
        return self._logout_task is not None and not self._logout_task.done

    def logout(self, confirm: ConfirmFn) -> LogoutResult:
        """Offer a final save file, then clear every stored key.

        With a save file the clear happens ``logout_delay`` seconds after
        delivery. If the save file cannot be produced nothing is cleared.
        """
        if self.logout_pending:
            return LogoutResult("scheduled")
        if confirm(self.LOGOUT_PROMPT) and self.session.is_logged_in():
            try:
                payload = self.transfer.export_all("json", trigger="logout")
                filename = self.transfer.export_filename("json")
            except FiquestError as exc:
                logger.error("Final export before logout failed: %s", exc)
                self.notices.show(
                    f"Could not create your save file ({exc}). Logout cancelled so no data is lost.",
                    level="error",
                )
                return LogoutResult("cancelled")
            delivery = self.delivery.deliver(payload, filename, content_type("json"))
            if not delivery.succeeded:
                logger.error("Save file %s could not be delivered; logout cancelled", filename)
                return LogoutResult("cancelled", filename, delivery)
            delay = self.settings.delivery.logout_delay
            self.notices.show(
                f"Save file created: {filename}\n\n"
                "Make sure to save this file - you'll need it to continue playing!\n\n"
                f"Logging out in {delay:g} seconds...",
                level="success",
            )
            self.autosaver.stop()
            self._logout_task = self.scheduler.call_later(delay, self._finish_logout, name="logout-clear")
            return LogoutResult("scheduled", filename, delivery)

        if confirm(self.LOGOUT_WITHOUT_SAVE_PROMPT):
            self._finish_logout()
            return LogoutResult("cleared")
        return LogoutResult("cancelled")

    def _finish_logout(self) -> None:
        self._logout_task = None
        self.autosaver.stop()
        self.session.clear_all_data()
        self.notices.show(self.NOTICE_LOGGED_OUT, level="success")
