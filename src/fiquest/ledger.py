"""Net-worth ledger: ID-keyed snapshots of a player's accounts, newest first.

The ledger has no storage of its own. It operates on the ``net_worth_tracking``
list of the active profile's GameData and calls ``on_change`` after every
mutation so the session can persist the profile.

Entry-level failures stay inside the operation: callers get ``None`` or
``False`` back and the reason is logged.
"""
from __future__ import annotations

import copy
import logging
import random
import string
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .clock import Clock
from .errors import EntryValidationError, UnsupportedFormatError
from .models import GameData, NetWorthEntry, Totals, normalize_accounts

logger = logging.getLogger(__name__)

# Fields a patch may never change
IMMUTABLE_FIELDS = frozenset({"id", "dateCreated"})
# Fields the ledger computes itself; caller-supplied values are ignored
DERIVED_FIELDS = frozenset({"totals", "dateModified"})
MERGEABLE_FIELDS = ("date", "accounts", "notes", "projectedData", "timezone")

_ID_ALPHABET = string.digits + string.ascii_lowercase
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d", "%m-%d-%Y")

SUMMARY_HEADERS = [
    "Date", "Total Assets", "Total Liabilities", "Net Worth",
    "Projected Net Worth", "Net Variance", "Notes",
]


@dataclass
class BulkImportResult:
    success_count: int = 0
    error_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"success": self.success_count, "errors": self.error_count}


def calculate_totals(accounts: Mapping[str, Any]) -> Totals:
    return Totals.from_accounts(accounts)


def new_entry_id(clock: Clock, rng: Optional[random.Random] = None) -> str:
    rng = rng or random.SystemRandom()
    suffix = "".join(rng.choice(_ID_ALPHABET) for _ in range(9))
    return f"nw_{clock.timestamp_ms()}_{suffix}"


def parse_entry_date(value: Any) -> Optional[datetime]:
    """Best-effort parse of a ledger date; None when it is not a recognizable date."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def date_sort_key(entry: NetWorthEntry) -> Tuple[int, datetime]:
    parsed = parse_entry_date(entry.date)
    # Unparseable dates sink below every real date; their relative order is not guaranteed
    return (1, parsed) if parsed is not None else (0, datetime.min)


def merge_entry(existing: NetWorthEntry, patch: Mapping[str, Any], modified_at: str) -> NetWorthEntry:
    """Shallow field-level merge of ``patch`` onto ``existing``.

    ``id`` and ``dateCreated`` are immutable, ``totals`` is recomputed from the
    merged accounts, and ``dateModified`` is stamped with ``modified_at``.
    Unknown patch keys are carried along as extra fields.
    """
    if not isinstance(patch, Mapping):
        raise EntryValidationError("Update data must be a mapping")
    ignored = sorted(k for k in patch if k in IMMUTABLE_FIELDS or k in DERIVED_FIELDS)
    if ignored:
        logger.debug("Ignoring immutable/derived fields in update of %s: %s", existing.id, ignored)

    accounts = normalize_accounts(patch["accounts"]) if "accounts" in patch else copy.deepcopy(existing.accounts)
    extra = copy.deepcopy(existing.extra)
    for key, value in patch.items():
        if key not in IMMUTABLE_FIELDS and key not in DERIVED_FIELDS and key not in MERGEABLE_FIELDS:
            extra[key] = copy.deepcopy(value)

    return NetWorthEntry(
        id=existing.id,
        date=str(patch["date"]) if "date" in patch else existing.date,
        date_created=existing.date_created,
        accounts=accounts,
        totals=calculate_totals(accounts),
        notes=(patch.get("notes") or "") if "notes" in patch else existing.notes,
        projected_data=copy.deepcopy(patch["projectedData"]) if "projectedData" in patch else copy.deepcopy(existing.projected_data),
        timezone=patch["timezone"] if "timezone" in patch else existing.timezone,
        date_modified=modified_at,
        extra=extra,
    )


class NetWorthLedger:
    """Add/update/delete/list view over a player's net-worth snapshots."""

    def __init__(
        self,
        game_data: GameData,
        clock: Clock,
        on_change: Optional[Callable[[], Any]] = None,
        rng: Optional[random.Random] = None,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self._game_data = game_data
        self._clock = clock
        self._on_change = on_change
        self._rng = rng
        # Shared with the owning session when there is one; mutate-and-save is one step
        self._lock = lock if lock is not None else threading.RLock()

    @property
    def _entries(self) -> List[NetWorthEntry]:
        return self._game_data.net_worth_tracking

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # --- Internal helpers ---
    def _sort(self) -> None:
        self._entries.sort(key=date_sort_key, reverse=True)

    def _changed(self) -> None:
        self._sort()
        if self._on_change is not None:
            self._on_change()

    def _index_of(self, entry_id: str) -> int:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return i
        return -1

    def _create(self, entry_data: Mapping[str, Any]) -> NetWorthEntry:
        if not isinstance(entry_data, Mapping):
            raise EntryValidationError("Entry data must be a mapping")
        accounts = normalize_accounts(entry_data.get("accounts"))
        local = self._clock.local()
        entry = NetWorthEntry(
            id=new_entry_id(self._clock, self._rng),
            date=str(entry_data.get("date") or local.date),
            date_created=local.iso,
            timezone=local.timezone,
            accounts=accounts,
            totals=calculate_totals(accounts),
            notes=entry_data.get("notes") or "",
            projected_data=copy.deepcopy(entry_data.get("projectedData")),
        )
        self._entries.append(entry)
        return entry

    # --- Public API ---
    def add(self, entry_data: Mapping[str, Any]) -> Optional[NetWorthEntry]:
        """Create an entry from caller data; returns a copy, or None if the data is invalid."""
        with self._lock:
            try:
                entry = self._create(entry_data)
            except EntryValidationError as exc:
                logger.warning("Error adding net worth entry: %s", exc)
                return None
            self._changed()
            logger.info("Net worth entry added: %s", entry.id)
            return copy.deepcopy(entry)

    def update(self, entry_id: str, patch: Mapping[str, Any]) -> Optional[NetWorthEntry]:
        """Merge ``patch`` into the entry; None when the id is unknown or the patch is invalid."""
        with self._lock:
            index = self._index_of(entry_id)
            if index == -1:
                logger.info("Net worth entry not found for update: %s", entry_id)
                return None
            try:
                updated = merge_entry(self._entries[index], patch, self._clock.local().iso)
            except EntryValidationError as exc:
                logger.warning("Error updating net worth entry %s: %s", entry_id, exc)
                return None
            self._entries[index] = updated
            self._changed()
            logger.info("Net worth entry updated: %s", entry_id)
            return copy.deepcopy(updated)

    def delete(self, entry_id: str) -> bool:
        with self._lock:
            index = self._index_of(entry_id)
            if index == -1:
                logger.info("Net worth entry not found for delete: %s", entry_id)
                return False
            del self._entries[index]
            self._changed()
            logger.info("Net worth entry deleted: %s", entry_id)
            return True

    def get(self, entry_id: str) -> Optional[NetWorthEntry]:
        with self._lock:
            index = self._index_of(entry_id)
            return copy.deepcopy(self._entries[index]) if index != -1 else None

    def list(self) -> List[NetWorthEntry]:
        """Entries newest first. The list and entries are copies."""
        with self._lock:
            return copy.deepcopy(self._entries)

    def latest(self) -> Optional[NetWorthEntry]:
        with self._lock:
            return copy.deepcopy(self._entries[0]) if self._entries else None

    def bulk_import(self, entries: Iterable[Mapping[str, Any]]) -> BulkImportResult:
        """Add each item independently; one bad item never aborts the rest."""
        result = BulkImportResult()
        with self._lock:
            for entry_data in entries:
                try:
                    self._create(entry_data)
                except EntryValidationError as exc:
                    logger.warning("Skipping net worth entry during import: %s", exc)
                    result.error_count += 1
                else:
                    result.success_count += 1
            if result.success_count:
                self._changed()
        logger.info(
            "Net worth import completed: %s successful, %s errors",
            result.success_count,
            result.error_count,
        )
        return result

    # --- Export ---
    def export(self, fmt: str = "json") -> Any:
        with self._lock:
            entries = [e.to_dict() for e in self._entries]
        if fmt == "json":
            return entries
        if fmt == "csv":
            return entries_to_csv(entries)
        if fmt == "excel":
            return entries_to_tables(entries)
        raise UnsupportedFormatError(f"Unsupported export format: {fmt}")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _quoted_row(values: Iterable[Any]) -> str:
    # Fields are quoted but embedded quotes are not escaped
    return ",".join(f'"{_cell(v)}"' for v in values)


def entries_to_csv(entries: List[Dict[str, Any]]) -> str:
    """Summary columns plus per-account columns taken from the first entry's accounts."""
    if not entries:
        return ""
    first = entries[0].get("accounts") or {}
    account_headers: List[str] = []
    for section in ("assets", "liabilities"):
        for name in (first.get(section) or {}):
            account_headers.extend([f"{name}_actual", f"{name}_projected", f"{name}_variance"])

    rows = [SUMMARY_HEADERS + account_headers]
    for entry in entries:
        totals = entry.get("totals") or {}
        row: List[Any] = [
            entry.get("date"),
            totals.get("totalAssets"),
            totals.get("totalLiabilities"),
            totals.get("netWorth"),
            totals.get("projectedNetWorth"),
            totals.get("netVariance"),
            entry.get("notes"),
        ]
        accounts = entry.get("accounts") or {}
        for section in ("assets", "liabilities"):
            for account in (accounts.get(section) or {}).values():
                row.extend([account.get("actual"), account.get("projected"), account.get("variance")])
        rows.append(row)
    return "\n".join(_quoted_row(r) for r in rows)


def entries_to_tables(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Spreadsheet-shaped summary and per-account detail tables."""
    summary = []
    detailed = []
    for entry in entries:
        totals = entry.get("totals") or {}
        summary.append({
            "Date": entry.get("date"),
            "Total Assets": totals.get("totalAssets"),
            "Total Liabilities": totals.get("totalLiabilities"),
            "Net Worth": totals.get("netWorth"),
            "Projected Net Worth": totals.get("projectedNetWorth"),
            "Variance": totals.get("netVariance"),
            "Notes": entry.get("notes"),
        })
        accounts = entry.get("accounts") or {}
        for section, label in (("assets", "Asset"), ("liabilities", "Liability")):
            for name, account in (accounts.get(section) or {}).items():
                detailed.append({
                    "Date": entry.get("date"),
                    "Type": label,
                    "Account": name,
                    "Actual": account.get("actual"),
                    "Projected": account.get("projected"),
                    "Variance": account.get("variance"),
                })
    return {
        "summary": {"title": "Net Worth Tracking Summary", "data": summary},
        "detailed": {"title": "Account-Level Details", "data": detailed},
    }
