from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .clock import LocalDateTime
from .errors import EntryValidationError, ProfileValidationError

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
DEFAULT_DATE_FORMAT = "MM/DD/YYYY"

# Removed from every exported copy of a profile
SENSITIVE_FIELDS = ("password",)


def _amount(account: Mapping[str, Any], name: str, field_name: str) -> float:
    value = account.get(field_name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EntryValidationError(f"Account {name!r} has a non-numeric {field_name}: {value!r}")
    return value


def normalize_accounts(accounts: Any) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Validate an ``{assets: {...}, liabilities: {...}}`` mapping and return a deep copy.

    Missing sections become empty. Per-account keys other than actual/projected
    (e.g. a stored variance) are kept.
    """
    if not isinstance(accounts, Mapping):
        raise EntryValidationError("accounts must be a mapping with assets and liabilities")
    result: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for section in ("assets", "liabilities"):
        raw = accounts.get(section) or {}
        if not isinstance(raw, Mapping):
            raise EntryValidationError(f"accounts.{section} must be a mapping")
        cleaned: Dict[str, Dict[str, Any]] = {}
        for name, account in raw.items():
            if not isinstance(account, Mapping):
                raise EntryValidationError(f"Account {name!r} must be a mapping of actual/projected")
            _amount(account, name, "actual")
            _amount(account, name, "projected")
            cleaned[str(name)] = copy.deepcopy(dict(account))
        result[section] = cleaned
    return result


@dataclass
class Totals:
    """Aggregates derived from an entry's accounts. Never set independently."""

    total_assets: float = 0
    total_liabilities: float = 0
    net_worth: float = 0
    projected_net_worth: float = 0
    net_variance: float = 0
    asset_variance: float = 0
    liability_variance: float = 0

    @staticmethod
    def from_accounts(accounts: Mapping[str, Any]) -> "Totals":
        accounts = normalize_accounts(accounts)
        total_assets = projected_assets = 0
        total_liabilities = projected_liabilities = 0
        for name, account in accounts["assets"].items():
            total_assets += _amount(account, name, "actual")
            projected_assets += _amount(account, name, "projected")
        for name, account in accounts["liabilities"].items():
            total_liabilities += _amount(account, name, "actual")
            projected_liabilities += _amount(account, name, "projected")
        net_worth = total_assets - total_liabilities
        projected_net_worth = projected_assets - projected_liabilities
        return Totals(
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            net_worth=net_worth,
            projected_net_worth=projected_net_worth,
            net_variance=net_worth - projected_net_worth,
            asset_variance=total_assets - projected_assets,
            liability_variance=total_liabilities - projected_liabilities,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "totalAssets": self.total_assets,
            "totalLiabilities": self.total_liabilities,
            "netWorth": self.net_worth,
            "projectedNetWorth": self.projected_net_worth,
            "netVariance": self.net_variance,
            "assetVariance": self.asset_variance,
            "liabilityVariance": self.liability_variance,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Totals":
        if not isinstance(data, Mapping):
            raise ProfileValidationError("totals must be an object")
        return Totals(
            total_assets=data.get("totalAssets", 0) or 0,
            total_liabilities=data.get("totalLiabilities", 0) or 0,
            net_worth=data.get("netWorth", 0) or 0,
            projected_net_worth=data.get("projectedNetWorth", 0) or 0,
            net_variance=data.get("netVariance", 0) or 0,
            asset_variance=data.get("assetVariance", 0) or 0,
            liability_variance=data.get("liabilityVariance", 0) or 0,
        )


@dataclass
class NetWorthEntry:
    """One point-in-time snapshot in the ledger."""

    id: str
    date: str
    date_created: str
    accounts: Dict[str, Dict[str, Dict[str, Any]]]
    totals: Totals
    notes: str = ""
    projected_data: Any = None
    timezone: Optional[str] = None
    date_modified: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "date": self.date,
            "dateCreated": self.date_created,
            "timezone": self.timezone,
            "accounts": copy.deepcopy(self.accounts),
            "totals": self.totals.to_dict(),
            "notes": self.notes,
            "projectedData": copy.deepcopy(self.projected_data),
        }
        if self.date_modified is not None:
            data["dateModified"] = self.date_modified
        for key, value in self.extra.items():
            data.setdefault(key, copy.deepcopy(value))
        return data

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "NetWorthEntry":
        known = {"id", "date", "dateCreated", "timezone", "accounts", "totals", "notes", "projectedData", "dateModified"}
        raw_accounts = data.get("accounts") or {}
        try:
            accounts = normalize_accounts(raw_accounts)
            totals = Totals.from_accounts(accounts)
        except EntryValidationError:
            # Keep what was stored rather than dropping a historical entry
            logger.warning("Stored net worth entry %s has malformed accounts", data.get("id"))
            accounts = copy.deepcopy(raw_accounts) if isinstance(raw_accounts, dict) else {}
            totals = Totals.from_dict(data.get("totals") or {})
        return NetWorthEntry(
            id=str(data.get("id", "")),
            date=str(data.get("date", "")),
            date_created=str(data.get("dateCreated", "")),
            accounts=accounts,
            totals=totals,
            notes=data.get("notes") or "",
            projected_data=copy.deepcopy(data.get("projectedData")),
            timezone=data.get("timezone"),
            date_modified=data.get("dateModified"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in known},
        )


@dataclass
class Preferences:
    currency: str = DEFAULT_CURRENCY
    date_format: str = DEFAULT_DATE_FORMAT

    def to_dict(self) -> Dict[str, str]:
        return {"currency": self.currency, "dateFormat": self.date_format}

    @staticmethod
    def from_dict(data: Optional[Mapping[str, Any]]) -> "Preferences":
        data = data or {}
        if not isinstance(data, Mapping):
            raise ProfileValidationError("gameData.preferences must be an object")
        return Preferences(
            currency=str(data.get("currency") or DEFAULT_CURRENCY),
            date_format=str(data.get("dateFormat") or DEFAULT_DATE_FORMAT),
        )


@dataclass
class GameData:
    """A player's game state. Scenario content is opaque to the persistence layer."""

    scenarios: List[Any] = field(default_factory=list)
    active_scenario: Any = None
    net_worth_setup: Any = None
    net_worth_tracking: List[NetWorthEntry] = field(default_factory=list)
    preferences: Preferences = field(default_factory=Preferences)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "scenarios": copy.deepcopy(self.scenarios),
            "activeScenario": copy.deepcopy(self.active_scenario),
            "netWorthSetup": copy.deepcopy(self.net_worth_setup),
            "netWorthTracking": [e.to_dict() for e in self.net_worth_tracking],
            "preferences": self.preferences.to_dict(),
        }
        for key, value in self.extra.items():
            data.setdefault(key, copy.deepcopy(value))
        return data

    @staticmethod
    def from_dict(data: Optional[Mapping[str, Any]]) -> "GameData":
        data = data or {}
        known = {"scenarios", "activeScenario", "netWorthSetup", "netWorthTracking", "preferences"}
        scenarios = data.get("scenarios") or []
        if not isinstance(scenarios, list):
            raise ProfileValidationError("gameData.scenarios must be a list")
        # A profile without a ledger has an empty one
        tracking = data.get("netWorthTracking") or []
        if not isinstance(tracking, list):
            raise ProfileValidationError("gameData.netWorthTracking must be a list")
        return GameData(
            scenarios=copy.deepcopy(scenarios),
            active_scenario=copy.deepcopy(data.get("activeScenario")),
            net_worth_setup=copy.deepcopy(data.get("netWorthSetup")),
            net_worth_tracking=[NetWorthEntry.from_dict(e) for e in tracking if isinstance(e, Mapping)],
            preferences=Preferences.from_dict(data.get("preferences")),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in known},
        )


@dataclass
class PlayerProfile:
    """Identity and game state for the single local player.

    ``player_name`` is case-insensitively unique; its lower-cased form is the
    storage key. Fields this layer does not model (createdDate, password, ...)
    ride along in ``extra``.
    """

    player_name: str
    game_data: GameData = field(default_factory=GameData)
    last_played_date: Optional[str] = None
    last_played_local: Optional[str] = None
    timezone: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.player_name, str) or not self.player_name.strip():
            raise ProfileValidationError("playerName must be a non-empty string")

    @property
    def storage_name(self) -> str:
        return self.player_name.lower()

    def touch(self, local: LocalDateTime) -> None:
        self.last_played_date = local.iso
        self.last_played_local = local.date
        self.timezone = local.timezone

    def to_dict(self, include_sensitive: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {"playerName": self.player_name}
        for key, value in self.extra.items():
            if not include_sensitive and key in SENSITIVE_FIELDS:
                continue
            data[key] = copy.deepcopy(value)
        data["lastPlayedDate"] = self.last_played_date
        data["lastPlayedLocal"] = self.last_played_local
        data["timezone"] = self.timezone
        data["gameData"] = self.game_data.to_dict()
        return data

    @staticmethod
    def from_dict(data: Any) -> "PlayerProfile":
        if not isinstance(data, Mapping):
            raise ProfileValidationError("Player data must be an object")
        game_data = data.get("gameData")
        if game_data is not None and not isinstance(game_data, Mapping):
            raise ProfileValidationError("gameData must be an object")
        known = {"playerName", "lastPlayedDate", "lastPlayedLocal", "timezone", "gameData"}
        return PlayerProfile(
            player_name=data.get("playerName"),  # validated in __post_init__
            game_data=GameData.from_dict(game_data),
            last_played_date=data.get("lastPlayedDate"),
            last_played_local=data.get("lastPlayedLocal"),
            timezone=data.get("timezone"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in known},
        )
