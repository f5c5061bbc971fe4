from __future__ import annotations

import itertools
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..errors import DeliveryError
from ..paths import ensure_dir
from .capabilities import HostCapabilities

logger = logging.getLogger(__name__)


class DeliveryHost(ABC):
    """Side-effecting primitives the delivery chain drives.

    Any primitive may raise; the chain treats an exception exactly like a
    refusal and moves on.
    """

    @abstractmethod
    def create_object_url(self, payload: str, content_type: str) -> str:
        """Register the payload and return a URL a download can point at."""

    @abstractmethod
    def revoke_object_url(self, url: str) -> None:
        """Release a URL from ``create_object_url``."""

    @abstractmethod
    def trigger_download(self, url: str, filename: str) -> None:
        """Start a download of ``url`` saved as ``filename``."""

    @abstractmethod
    def open_window(self, url: str) -> bool:
        """Open ``url`` in a new browsing context; False when a popup blocker refuses."""

    @abstractmethod
    def share(self, payload: str, filename: str, content_type: str, title: str, text: str) -> bool:
        """Offer the payload as a named file; False when the user cancels or the host rejects it."""

    @abstractmethod
    def write_clipboard(self, text: str) -> None:
        """Copy with the modern clipboard capability. Raises when permission is denied."""

    @abstractmethod
    def legacy_copy(self, text: str) -> bool:
        """Copy through a hidden selectable text area."""


class DirectoryHost(DeliveryHost):
    """Host for a local process: a "download" writes the file into ``download_dir``.

    There are no popups, no share surface and no clipboard.
    """

    def __init__(self, download_dir: Path) -> None:
        self.download_dir = Path(download_dir)
        self._objects: Dict[str, Tuple[str, str]] = {}
        self._ids = itertools.count(1)
        self.last_path: Optional[Path] = None

    @staticmethod
    def capabilities() -> HostCapabilities:
        return HostCapabilities(has_blob_download=True, has_clipboard=False)

    def create_object_url(self, payload: str, content_type: str) -> str:
        url = f"blob:fiquest/{next(self._ids)}"
        self._objects[url] = (payload, content_type)
        return url

    def revoke_object_url(self, url: str) -> None:
        self._objects.pop(url, None)

    def trigger_download(self, url: str, filename: str) -> None:
        try:
            payload, _ = self._objects[url]
        except KeyError:
            raise DeliveryError(f"Object URL already revoked: {url}") from None
        target = ensure_dir(self.download_dir) / Path(filename).name
        tmp = target.with_suffix(target.suffix + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8", newline="") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, target)
        except OSError as exc:
            raise DeliveryError(f"Cannot write {target}: {exc}") from exc
        self.last_path = target
        logger.info("Wrote %s", target)

    def open_window(self, url: str) -> bool:
        return False

    def share(self, payload: str, filename: str, content_type: str, title: str, text: str) -> bool:
        return False

    def write_clipboard(self, text: str) -> None:
        raise DeliveryError("No clipboard available")

    def legacy_copy(self, text: str) -> bool:
        return False
