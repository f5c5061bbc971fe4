"""Export envelope: the versioned, self-contained save-file format.

JSON layout::

    {
      "version": "1.0.0",
      "exportDate": ISO-8601,
      "exportTimezone": IANA zone,
      "playerData": {...profile without password...},
      "gameData": {"scenarios", "activeScenario", "netWorthSetup",
                   "netWorthHistory", "currentNetWorth"},
      "metadata": {"exportedBy", "dataIntegrity", "dataIntegrityScope",
                   "playerName", "lastPlayedDate", "exportTrigger"?}
    }

Files written by the web app carry a hash taken over the profile before its
password was removed, so it cannot be recomputed from the file. Only hashes
marked with ``dataIntegrityScope`` are checked on import.
"""
from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..clock import LocalDateTime
from ..errors import DecodeError, ImportValidationError, UnsupportedFormatError
from ..models import SENSITIVE_FIELDS, PlayerProfile
from ..utils.jsonutil import compact_dumps, pretty_dumps, rolling_hash
from .keys import GAME_DATA_KEYS
from .obfuscation import deobfuscate

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"
SUPPORTED_VERSIONS = ("1.0.0",)
EXPORT_FORMATS = ("json", "csv")
DEFAULT_EXPORTER = "FIQuest Web Application"
# The hash covers playerData exactly as exported, without the password
INTEGRITY_SCOPE = "playerData"

CONTENT_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "txt": "text/plain",
}

_UNSAFE_NAME_CHARS = re.compile(r"[^a-z0-9]")


def sanitize_player_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("", name.lower())


def export_filename(player_name: str, date_stamp: str, fmt: str = "json", obfuscated: bool = False) -> str:
    """``fiquest_<name>_<MMDDYY>[_encrypted].<ext>``"""
    suffix = "_encrypted" if obfuscated else ""
    return f"fiquest_{sanitize_player_name(player_name)}_{date_stamp}{suffix}.{fmt}"


def content_type(fmt: str) -> str:
    return CONTENT_TYPES.get(fmt, "text/plain")


def strip_sensitive(player_data: Mapping[str, Any]) -> Dict[str, Any]:
    data = copy.deepcopy(dict(player_data))
    for key in SENSITIVE_FIELDS:
        data.pop(key, None)
    return data


def integrity_hash(player_data: Mapping[str, Any]) -> str:
    return rolling_hash(compact_dumps(player_data))


@dataclass
class ExportEnvelope:
    version: str
    export_date: str
    export_timezone: str
    player_data: Dict[str, Any]
    game_data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def player_name(self) -> str:
        return self.player_data.get("playerName", "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "exportDate": self.export_date,
            "exportTimezone": self.export_timezone,
            "playerData": copy.deepcopy(self.player_data),
            "gameData": copy.deepcopy(self.game_data),
            "metadata": copy.deepcopy(self.metadata),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ExportEnvelope":
        return ExportEnvelope(
            version=str(data.get("version")),
            export_date=data.get("exportDate"),
            export_timezone=data.get("exportTimezone"),
            player_data=copy.deepcopy(dict(data.get("playerData") or {})),
            game_data=copy.deepcopy(dict(data.get("gameData") or {})),
            metadata=copy.deepcopy(dict(data.get("metadata") or {})),
        )


def build_envelope(
    profile: PlayerProfile,
    game_data: Mapping[str, Any],
    local: LocalDateTime,
    exporter: str = DEFAULT_EXPORTER,
    trigger: Optional[str] = None,
) -> ExportEnvelope:
    """Assemble an envelope from the profile and the store's game-data keys.

    The password is stripped and the integrity hash is taken over the stripped
    profile, so an importer can recompute it from the envelope alone.
    """
    player_data = strip_sensitive(profile.to_dict())
    metadata: Dict[str, Any] = {
        "exportedBy": exporter,
        "dataIntegrity": integrity_hash(player_data),
        "dataIntegrityScope": INTEGRITY_SCOPE,
        "playerName": profile.player_name,
        "lastPlayedDate": profile.last_played_date,
    }
    if trigger:
        metadata["exportTrigger"] = trigger
    return ExportEnvelope(
        version=EXPORT_VERSION,
        export_date=local.iso,
        export_timezone=local.timezone,
        player_data=player_data,
        game_data={name: copy.deepcopy(game_data.get(name)) for name in GAME_DATA_KEYS},
        metadata=metadata,
    )


# --- Serialization ---

def encode_json(envelope: ExportEnvelope) -> str:
    return pretty_dumps(envelope.to_dict())


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _row(*values: Any) -> str:
    # Every field quoted; embedded quotes are left as-is
    return ",".join(f'"{_cell(v)}"' for v in values) + "\n"


def encode_csv(envelope: ExportEnvelope) -> str:
    """Flatten the envelope into titled CSV sections for spreadsheet users.

    This is a one-way report: CSV exports cannot be imported back.
    """
    player = envelope.player_data
    csv = _row("FIQuest Data Export - Player Information")
    csv += _row("Player Name", "Export Date", "Last Played", "Timezone")
    csv += _row(player.get("playerName"), envelope.export_date, player.get("lastPlayedDate"), envelope.export_timezone)
    csv += "\n"

    scenarios = envelope.game_data.get("scenarios") or []
    if scenarios:
        csv += _row("Financial Independence Scenarios")
        csv += _row("Scenario Name", "Target Amount", "Annual Spending", "Withdrawal Rate", "Estimated FI Year")
        for scenario in scenarios:
            scenario = scenario if isinstance(scenario, Mapping) else {}
            csv += _row(
                scenario.get("name") or "Unnamed",
                scenario.get("targetAmount") or 0,
                scenario.get("annualSpending") or 0,
                scenario.get("withdrawalRate") or 4,
                scenario.get("fiYear") or "Not Calculated",
            )
        csv += "\n"

    tracking = (player.get("gameData") or {}).get("netWorthTracking")
    if tracking is not None:
        csv += _row("Net Worth Tracking History")
        csv += _row("Date", "Total Assets", "Total Liabilities", "Net Worth", "Projected Net Worth", "Variance", "Notes")
        for entry in tracking:
            totals = entry.get("totals") or {}
            csv += _row(
                entry.get("date"),
                totals.get("totalAssets"),
                totals.get("totalLiabilities"),
                totals.get("netWorth"),
                totals.get("projectedNetWorth") or 0,
                totals.get("netVariance") or 0,
                entry.get("notes") or "",
            )
    return csv


def encode(envelope: ExportEnvelope, fmt: str = "json") -> str:
    if fmt == "json":
        return encode_json(envelope)
    if fmt == "csv":
        return encode_csv(envelope)
    raise UnsupportedFormatError(f"Unsupported export format: {fmt}")


# --- Parsing and validation ---

def validate_envelope(data: Any) -> List[str]:
    """Check the shape an import needs; returns compatibility warnings.

    Raises ImportValidationError when the payload cannot be imported at all.
    Unknown versions are accepted with a warning.
    """
    if not isinstance(data, Mapping):
        raise ImportValidationError("Invalid import data format: expected a JSON object")
    version = data.get("version")
    if not version or not isinstance(version, str):
        raise ImportValidationError("Invalid import data format: missing version")
    player_data = data.get("playerData")
    if not isinstance(player_data, Mapping):
        raise ImportValidationError("Invalid import data format: missing playerData")
    name = player_data.get("playerName")
    if not isinstance(name, str) or not name.strip():
        raise ImportValidationError("Invalid import data format: missing playerData.playerName")
    game_data = data.get("gameData")
    if game_data is not None and not isinstance(game_data, Mapping):
        raise ImportValidationError("Invalid import data format: gameData must be an object")
    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, Mapping):
        raise ImportValidationError("Invalid import data format: metadata must be an object")

    warnings: List[str] = []
    if version not in SUPPORTED_VERSIONS:
        logger.warning("Import data version may not be fully compatible: %s", version)
        warnings.append(f"Import data version {version} may not be fully compatible")

    metadata = metadata or {}
    expected = metadata.get("dataIntegrity")
    if expected and metadata.get("dataIntegrityScope") != INTEGRITY_SCOPE:
        logger.debug("Integrity hash %s has no checkable scope; skipping verification", expected)
    elif expected:
        actual = integrity_hash(player_data)
        if actual != expected:
            logger.warning("Integrity hash mismatch on import: expected %s, got %s", expected, actual)
            warnings.append("Data integrity check did not match; the file may have been edited")
    return warnings


def parse_payload(payload: Union[str, Mapping[str, Any]], is_obfuscated: bool = False) -> Tuple[ExportEnvelope, List[str]]:
    """Decode, parse and validate an import payload.

    ``payload`` is file text, or an already-parsed envelope dict.
    Raises DecodeError for obfuscation failures and ImportValidationError for
    anything that is not a usable envelope.
    """
    if isinstance(payload, Mapping) and not is_obfuscated:
        data: Any = payload
    else:
        text = deobfuscate(payload) if is_obfuscated else payload
        try:
            data = json.loads(text)
        except (TypeError, json.JSONDecodeError) as exc:
            if is_obfuscated:
                raise DecodeError("Decoded data is not valid JSON") from exc
            raise ImportValidationError(f"Invalid JSON: {exc}") from exc
    warnings = validate_envelope(data)
    return ExportEnvelope.from_dict(data), warnings
