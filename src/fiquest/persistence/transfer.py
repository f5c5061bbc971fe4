"""Export/import of the complete player state, with backup-before-overwrite.

``export_all`` raises on misuse (no player, unknown format). ``import_all``
never raises: every outcome comes back as an :class:`ImportResult`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

from ..errors import (
    DecodeError,
    ImportValidationError,
    NoActivePlayerError,
    StorageError,
    UnsupportedFormatError,
)
from ..models import PlayerProfile
from . import codec, keys, obfuscation
from .codec import DEFAULT_EXPORTER, EXPORT_FORMATS, ExportEnvelope

if TYPE_CHECKING:  # pragma: no cover
    from ..session import SessionManager

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    success: bool
    message: str
    player_name: Optional[str] = None
    import_date: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    backup_key: Optional[str] = None
    code: str = "OK"  # OK | DECODE_FAILED | INVALID | BACKUP_FAILED | APPLY_FAILED | NOT_FOUND

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.player_name is not None:
            data["playerName"] = self.player_name
        if self.import_date is not None:
            data["importDate"] = self.import_date
        if self.warnings:
            data["warnings"] = list(self.warnings)
        if self.backup_key is not None:
            data["backupKey"] = self.backup_key
        return data


class DataTransfer:
    """Builds export payloads from, and applies imports to, a SessionManager."""

    MESSAGE_IMPORT_SUCCESS = "Data imported successfully"

    def __init__(self, session: "SessionManager", exporter_name: str = DEFAULT_EXPORTER) -> None:
        self.session = session
        self.exporter_name = exporter_name

    # --- Export ---
    def collect_game_data(self) -> Dict[str, Any]:
        store = self.session.store
        return {name: store.get_json(key) for name, key in keys.GAME_DATA_KEYS.items()}

    def build_envelope(self, trigger: Optional[str] = None) -> ExportEnvelope:
        """Save the active profile, then snapshot it and the store's game-data keys."""
        profile = self.session.require_player()
        if not self.session.save_player_data():
            logger.warning("Pre-export save failed; exporting in-memory state")
        return codec.build_envelope(
            profile,
            self.collect_game_data(),
            self.session.clock.local(),
            exporter=self.exporter_name,
            trigger=trigger,
        )

    def export_all(self, fmt: str = "json", obfuscate: bool = False, trigger: Optional[str] = None) -> str:
        """Serialize the full player state.

        Raises NoActivePlayerError without a player and UnsupportedFormatError
        for formats other than json/csv, or when obfuscating anything but JSON.
        """
        if fmt not in EXPORT_FORMATS:
            raise UnsupportedFormatError(f"Unsupported export format: {fmt}")
        if obfuscate and fmt != "json":
            raise UnsupportedFormatError("Only JSON exports can be encrypted")
        if not self.session.is_logged_in():
            raise NoActivePlayerError("No user logged in")
        envelope = self.build_envelope(trigger)
        text = codec.encode(envelope, fmt)
        if obfuscate:
            text = obfuscation.obfuscate(text)
        logger.info(
            "Exported data for %s (format=%s, encrypted=%s)",
            envelope.player_name,
            fmt,
            obfuscate,
        )
        return text

    def export_filename(self, fmt: str = "json", obfuscated: bool = False) -> str:
        profile = self.session.require_player()
        return codec.export_filename(profile.player_name, self.session.clock.filename_date(), fmt, obfuscated)

    # --- Import ---
    def import_all(self, payload: Union[str, Mapping[str, Any]], is_obfuscated: bool = False) -> ImportResult:
        """Validate, back up, apply. The store is untouched unless validation passes."""
        try:
            envelope, warnings = codec.parse_payload(payload, is_obfuscated)
            profile = PlayerProfile.from_dict(envelope.player_data)
        except DecodeError as exc:
            logger.warning("Import rejected: %s", exc)
            return ImportResult(False, str(exc), code="DECODE_FAILED")
        except ImportValidationError as exc:
            logger.warning("Import rejected: %s", exc)
            return ImportResult(False, f"Import failed: {exc}", code="INVALID")
        except Exception as exc:  # noqa: BLE001 - import never raises past this boundary
            logger.exception("Import rejected: unreadable payload")
            return ImportResult(False, f"Import failed: invalid import data ({exc})", code="INVALID")

        try:
            backup = self._write_backup()
        except (StorageError, NoActivePlayerError) as exc:
            logger.error("Could not back up current data before import: %s", exc)
            return ImportResult(
                False,
                f"Import cancelled: could not back up your current data ({exc})",
                warnings=warnings,
                code="BACKUP_FAILED",
            )

        try:
            self._apply(envelope, profile)
        except Exception as exc:  # noqa: BLE001 - every apply failure must leave the backup
            logger.exception("Import failed during apply; backup kept at %s", backup)
            message = f"Import failed: {exc}."
            if backup:
                message += f" Your previous data is saved under {backup}."
            return ImportResult(False, message, warnings=warnings, backup_key=backup, code="APPLY_FAILED")

        if backup:
            try:
                self.session.store.remove_item(backup)
                logger.info("Removed import backup %s", backup)
            except StorageError as exc:
                logger.warning("Import succeeded but backup %s could not be removed: %s", backup, exc)
        logger.info("Imported data for %s", profile.player_name)
        return ImportResult(
            True,
            self.MESSAGE_IMPORT_SUCCESS,
            player_name=profile.player_name,
            import_date=envelope.export_date,
            warnings=warnings,
        )

    def _write_backup(self) -> Optional[str]:
        if not self.session.is_logged_in():
            logger.info("No active player; nothing to back up before import")
            return None
        snapshot = self.export_all("json")
        stamp = self.session.clock.timestamp_ms()
        key = keys.backup_key(stamp)
        while self.session.store.get_item(key) is not None:
            stamp += 1
            key = keys.backup_key(stamp)
        self.session.store.set_item(key, snapshot)
        logger.info("Wrote pre-import backup %s", key)
        return key

    def _apply(self, envelope: ExportEnvelope, profile: PlayerProfile) -> None:
        store = self.session.store
        touched = list(keys.GAME_DATA_KEYS.values())
        touched += [keys.player_key(profile.player_name), keys.CURRENT_PLAYER_KEY]
        # Autosave must not collect half-written game data into the outgoing profile
        with self.session.transaction():
            previous = {key: store.get_item(key) for key in touched}
            try:
                for name, key in keys.GAME_DATA_KEYS.items():
                    value = envelope.game_data.get(name)
                    # Sub-objects missing from the envelope are left as they are
                    if value is not None:
                        store.set_json(key, value)
                self.session.persist_profile(profile)
                self.session.activate(profile)
            except Exception:
                self._rollback(previous)
                raise

    def _rollback(self, previous: Mapping[str, Optional[str]]) -> None:
        store = self.session.store
        for key, raw in previous.items():
            try:
                if raw is None:
                    store.remove_item(key)
                else:
                    store.set_item(key, raw)
            except StorageError as exc:
                logger.error("Could not restore %s after failed import: %s", key, exc)

    # --- Manual recovery ---
    def list_backups(self) -> List[str]:
        return sorted(k for k in self.session.store.keys() if k.startswith(keys.BACKUP_KEY_PREFIX))

    def restore_backup(self, key: str) -> ImportResult:
        """Import a backup snapshot; the backup key is removed once it is active again."""
        if not key.startswith(keys.BACKUP_KEY_PREFIX):
            return ImportResult(False, f"Not a backup key: {key}", code="NOT_FOUND")
        raw = self.session.store.get_item(key)
        if not raw:
            return ImportResult(False, f"Backup not found: {key}", code="NOT_FOUND")
        result = self.import_all(raw)
        if result.success:
            try:
                self.session.store.remove_item(key)
            except StorageError as exc:
                logger.warning("Restored %s but could not remove it: %s", key, exc)
            logger.info("Restored backup %s", key)
        return result
