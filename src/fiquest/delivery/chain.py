"""File delivery with graceful degradation.

One primary strategy is chosen from the host's capabilities. If it fails, the
payload goes to the clipboard, and the user is told which filename to save it
under. ``deliver`` never raises.

Primary strategy, first match wins:

1. blob-download   host can create object URLs and trigger downloads
2. data-url-popup  Safari family, which does not always honor (1)
3. native-share    touch host with a share surface
4. popup-fallback  non-touch, non-Safari host without a share surface

clipboard is the terminal fallback and is always last.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..notices import NoticeBoard
from ..scheduling import Scheduler, TaskGroup
from . import instructions
from .capabilities import HostCapabilities
from .host import DeliveryHost

logger = logging.getLogger(__name__)

DEFAULT_REVOKE_DELAY = 0.1
DEFAULT_INSTRUCTIONS_DELAY = 0.5


class Strategy(str, Enum):
    BLOB_DOWNLOAD = "blob-download"
    DATA_URL_POPUP = "data-url-popup"
    NATIVE_SHARE = "native-share"
    POPUP_FALLBACK = "popup-fallback"
    CLIPBOARD = "clipboard"


@dataclass
class DeliveryResult:
    strategy_used: Strategy
    succeeded: bool
    attempted: List[Strategy] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategyUsed": self.strategy_used.value,
            "succeeded": self.succeeded,
            "attempted": [s.value for s in self.attempted],
            "message": self.message,
        }


def select_strategy(caps: HostCapabilities) -> Optional[Strategy]:
    """The primary strategy for ``caps``, or None when only the clipboard is left."""
    if caps.has_blob_download:
        return Strategy.BLOB_DOWNLOAD
    if caps.is_safari:
        return Strategy.DATA_URL_POPUP
    if caps.is_touch_host and caps.has_share:
        return Strategy.NATIVE_SHARE
    if not caps.is_touch_host and not caps.has_share:
        return Strategy.POPUP_FALLBACK
    return None


def plan_strategies(caps: HostCapabilities) -> List[Strategy]:
    primary = select_strategy(caps)
    return [primary, Strategy.CLIPBOARD] if primary is not None else [Strategy.CLIPBOARD]


# Characters encodeURIComponent leaves unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"


def data_url(payload: str, content_type: str) -> str:
    encoded = quote(payload, safe=_URI_COMPONENT_SAFE)
    return f"data:{content_type};charset=utf-8,{encoded}"


class FileDeliveryChain:
    """Delivers a payload as a file through whatever the host allows.

    Object-URL revocation and delayed instructions are one-shot tasks owned by
    the chain; ``close`` cancels the instructions and revokes URLs still held.
    """

    def __init__(
        self,
        host: DeliveryHost,
        capabilities: HostCapabilities,
        scheduler: Scheduler,
        notices: Optional[NoticeBoard] = None,
        revoke_delay: float = DEFAULT_REVOKE_DELAY,
        instructions_delay: float = DEFAULT_INSTRUCTIONS_DELAY,
    ) -> None:
        self.host = host
        self.capabilities = capabilities
        self.notices = notices or NoticeBoard()
        self.revoke_delay = revoke_delay
        self.instructions_delay = instructions_delay
        self._tasks = TaskGroup(scheduler)
        self._live_urls: List[str] = []

    def deliver(self, payload: str, filename: str, content_type: str = "application/json") -> DeliveryResult:
        caps = self.capabilities
        primary = select_strategy(caps)
        attempted: List[Strategy] = []
        fallback_message = instructions.clipboard_only(filename, caps.is_touch_host)

        if primary is not None:
            attempted.append(primary)
            logger.info("Delivering %s via %s", filename, primary.value)
            try:
                result = self._run(primary, payload, filename, content_type, attempted)
            except Exception:  # noqa: BLE001 - delivery degrades, never fails
                logger.exception("Delivery strategy %s raised", primary.value)
                result = None
            if result is not None:
                return result
            fallback_message = self._fallback_message(primary, filename)
            logger.warning("Delivery via %s failed for %s; falling back to clipboard", primary.value, filename)
        else:
            logger.info("No download strategy available for %s; using clipboard", filename)

        return self._clipboard(payload, filename, fallback_message, attempted)

    def _fallback_message(self, failed: Strategy, filename: str) -> str:
        if failed is Strategy.DATA_URL_POPUP:
            return instructions.popup_blocked(filename, safari=True)
        if failed is Strategy.POPUP_FALLBACK:
            return instructions.popup_blocked(filename, safari=False)
        if failed is Strategy.NATIVE_SHARE:
            return instructions.share_failed(filename)
        return instructions.clipboard_only(filename, touch=False)

    def _run(
        self,
        strategy: Strategy,
        payload: str,
        filename: str,
        content_type: str,
        attempted: List[Strategy],
    ) -> Optional[DeliveryResult]:
        """Run one strategy; None means it failed and the caller falls back."""
        if strategy is Strategy.BLOB_DOWNLOAD:
            if not self._blob_download(payload, filename, content_type):
                return None
            return DeliveryResult(strategy, True, list(attempted))

        if strategy in (Strategy.DATA_URL_POPUP, Strategy.POPUP_FALLBACK):
            if not self.host.open_window(data_url(payload, content_type)):
                logger.warning("Popup blocked while delivering %s", filename)
                return None
            message = instructions.popup_instructions(
                filename,
                touch=self.capabilities.is_touch_host,
                safari=strategy is Strategy.DATA_URL_POPUP,
            )
            self._tasks.call_later(
                self.instructions_delay,
                lambda: self.notices.show(message, level="info"),
                name="popup-instructions",
            )
            return DeliveryResult(strategy, True, list(attempted), message)

        if strategy is Strategy.NATIVE_SHARE:
            shared = self.host.share(
                payload, filename, content_type, instructions.SHARE_TITLE, instructions.SHARE_TEXT
            )
            if not shared:
                logger.warning("Share cancelled or rejected for %s", filename)
                return None
            return DeliveryResult(strategy, True, list(attempted))

        raise ValueError(f"Not a primary strategy: {strategy}")

    def _blob_download(self, payload: str, filename: str, content_type: str) -> bool:
        url = self.host.create_object_url(payload, content_type)
        self._live_urls.append(url)
        try:
            self.host.trigger_download(url, filename)
        except Exception:  # noqa: BLE001
            logger.exception("Download of %s failed", filename)
            self._revoke(url)
            return False
        # Released later; some hosts drop the download if the URL goes away immediately
        self._tasks.call_later(self.revoke_delay, lambda: self._revoke(url), name="revoke-object-url")
        return True

    def _revoke(self, url: str) -> None:
        if url not in self._live_urls:
            return
        self._live_urls.remove(url)
        try:
            self.host.revoke_object_url(url)
        except Exception:  # noqa: BLE001
            logger.warning("Could not revoke %s", url, exc_info=True)

    def _clipboard(self, payload: str, filename: str, message: str, attempted: List[Strategy]) -> DeliveryResult:
        attempted.append(Strategy.CLIPBOARD)
        copied = self._copy(payload)
        if not copied:
            message = instructions.clipboard_failed(filename)
        self.notices.show(message, level="warning" if copied else "error")
        return DeliveryResult(Strategy.CLIPBOARD, copied, list(attempted), message)

    def _copy(self, payload: str) -> bool:
        if self.capabilities.has_clipboard:
            try:
                self.host.write_clipboard(payload)
                logger.info("Copied payload to clipboard")
                return True
            except Exception as exc:  # noqa: BLE001 - nothing left to fall back to but the legacy copy
                logger.error("Clipboard copy failed: %s", exc)
        try:
            copied = bool(self.host.legacy_copy(payload))
        except Exception as exc:  # noqa: BLE001
            logger.error("Legacy clipboard copy failed: %s", exc)
            return False
        if copied:
            logger.info("Copied payload with legacy clipboard copy")
        else:
            logger.error("Legacy clipboard copy failed")
        return copied

    def close(self) -> None:
        """Cancel pending instructions and release any object URLs still held."""
        self._tasks.cancel_all()
        for url in list(self._live_urls):
            self._revoke(url)
