"""Local date/time stamps for profiles, ledger entries and export files.

Every record is stamped with both a UTC instant and the player's local calendar
date, so the clock needs to know which IANA zone "local" means. Resolution order
is the explicit setting, then the TZ environment variable, then UTC.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Callable, Dict, Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class LocalDateTime:
    """A single reading of the clock in every format the persistence layer uses."""

    date: str  # M/D/YYYY
    time: str  # h:MM:SS AM/PM
    timezone: str
    iso: str  # UTC, millisecond precision, Z suffix
    timestamp: int  # epoch milliseconds


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_zone(name: Optional[str]) -> tzinfo:
    candidate = (name or os.getenv("TZ") or DEFAULT_TIMEZONE).strip()
    try:
        return ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        if candidate != DEFAULT_TIMEZONE:
            logger.warning("Ignoring unsupported timezone value: %s", candidate)
        return timezone.utc


def to_iso(moment: datetime) -> str:
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def us_date(moment: datetime) -> str:
    return f"{moment.month}/{moment.day}/{moment.year}"


def us_time(moment: datetime, seconds: bool = True) -> str:
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    if seconds:
        return f"{hour}:{moment.minute:02d}:{moment.second:02d} {suffix}"
    return f"{hour}:{moment.minute:02d} {suffix}"


class Clock:
    """Reads the host clock in the configured zone.

    ``now`` may be injected to pin time in tests; it must return an aware datetime.
    """

    def __init__(self, timezone: Optional[str] = None, now: Optional[Callable[[], datetime]] = None) -> None:
        self._zone = _resolve_zone(timezone)
        self._now = now or _utc_now

    @property
    def zone_name(self) -> str:
        return getattr(self._zone, "key", str(self._zone))

    def now(self) -> datetime:
        return self._now().astimezone(self._zone)

    def local(self) -> LocalDateTime:
        moment = self.now()
        return LocalDateTime(
            date=us_date(moment),
            time=us_time(moment),
            timezone=self.zone_name,
            iso=to_iso(moment),
            timestamp=int(moment.timestamp() * 1000),
        )

    def today(self) -> str:
        return us_date(self.now())

    def timestamp_ms(self) -> int:
        return int(self.now().timestamp() * 1000)

    def filename_date(self) -> str:
        """Return the MMDDYY stamp used in export file names, e.g. ``091025``."""
        return self.now().strftime("%m%d%y")

    def timezone_info(self) -> Dict[str, str]:
        offset = self.now().utcoffset()
        minutes = int(offset.total_seconds() // 60) if offset is not None else 0
        hours = abs(minutes) / 60
        hours_text = str(int(hours)) if hours.is_integer() else str(hours)
        sign = "+" if minutes >= 0 else "-"
        return {
            "timezone": self.zone_name,
            "offset": f"UTC{sign}{hours_text}",
            "name": self.zone_name.split("/")[-1].replace("_", " "),
        }

    def format_for_display(self, moment: Optional[datetime] = None) -> Dict[str, str]:
        moment = (moment or self._now()).astimezone(self._zone)
        return {
            "short": us_date(moment),
            "long": f"{moment.strftime('%A, %B')} {moment.day}, {moment.year}",
            "time": us_time(moment, seconds=False),
        }
