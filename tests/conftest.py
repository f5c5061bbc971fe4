import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from fiquest.clock import Clock  # noqa: E402
from fiquest.delivery.host import DeliveryHost  # noqa: E402
from fiquest.notices import NoticeBoard  # noqa: E402
from fiquest.persistence.store import MemoryStore  # noqa: E402
from fiquest.scheduling import ManualScheduler  # noqa: E402
from fiquest.session import SessionManager  # noqa: E402

START = datetime(2024, 3, 5, 14, 30, 15, 250000, tzinfo=timezone.utc)


class TickingNow:
    """Time source for Clock: returns ``current`` and then moves it forward by ``step``."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(0)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeHost(DeliveryHost):
    """Records every primitive call; each primitive's outcome is configurable."""

    def __init__(
        self,
        popup_allowed: bool = True,
        share_result: bool = True,
        clipboard_error: Optional[Exception] = None,
        legacy_result: bool = True,
        download_error: Optional[Exception] = None,
    ) -> None:
        self.popup_allowed = popup_allowed
        self.share_result = share_result
        self.clipboard_error = clipboard_error
        self.legacy_result = legacy_result
        self.download_error = download_error
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.live_urls: Dict[str, str] = {}
        self.clipboard: Optional[str] = None
        self._next = 0

    @property
    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def create_object_url(self, payload: str, content_type: str) -> str:
        self._next += 1
        url = f"blob:test/{self._next}"
        self.live_urls[url] = payload
        self.calls.append(("create_object_url", (content_type,)))
        return url

    def revoke_object_url(self, url: str) -> None:
        self.live_urls.pop(url, None)
        self.calls.append(("revoke_object_url", (url,)))

    def trigger_download(self, url: str, filename: str) -> None:
        self.calls.append(("trigger_download", (url, filename)))
        if self.download_error is not None:
            raise self.download_error

    def open_window(self, url: str) -> bool:
        self.calls.append(("open_window", (url,)))
        return self.popup_allowed

    def share(self, payload: str, filename: str, content_type: str, title: str, text: str) -> bool:
        self.calls.append(("share", (filename, content_type, title, text)))
        return self.share_result

    def write_clipboard(self, text: str) -> None:
        self.calls.append(("write_clipboard", ()))
        if self.clipboard_error is not None:
            raise self.clipboard_error
        self.clipboard = text

    def legacy_copy(self, text: str) -> bool:
        self.calls.append(("legacy_copy", ()))
        if self.legacy_result:
            self.clipboard = text
        return self.legacy_result


@pytest.fixture()
def now_source() -> TickingNow:
    return TickingNow(step=timedelta(milliseconds=1))


@pytest.fixture()
def clock(now_source: TickingNow) -> Clock:
    return Clock("UTC", now=now_source)


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def session(store: MemoryStore, clock: Clock) -> SessionManager:
    return SessionManager(store, clock)


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def notices() -> NoticeBoard:
    return NoticeBoard()


@pytest.fixture()
def host() -> FakeHost:
    return FakeHost()
