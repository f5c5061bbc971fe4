from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Optional

import yaml

from .paths import default_data_dir

logger = logging.getLogger(__name__)


@dataclass
class StorageSettings:
    backend: str = "file"  # file | memory
    path: Optional[str] = None
    quota_bytes: Optional[int] = 5 * 1024 * 1024

    def resolved_path(self) -> Path:
        if self.path:
            return Path(self.path).expanduser()
        return default_data_dir() / "store.json"


@dataclass
class AutosaveSettings:
    enabled: bool = True
    interval_minutes: float = 2.0


@dataclass
class DeliverySettings:
    revoke_delay: float = 0.1
    instructions_delay: float = 0.5
    logout_delay: float = 3.0
    download_dir: Optional[str] = None

    def resolved_download_dir(self) -> Path:
        if self.download_dir:
            return Path(self.download_dir).expanduser()
        return default_data_dir() / "exports"


@dataclass
class Settings:
    timezone: Optional[str] = None
    exporter_name: str = "FIQuest Web Application"
    storage: StorageSettings = field(default_factory=StorageSettings)
    autosave: AutosaveSettings = field(default_factory=AutosaveSettings)
    delivery: DeliverySettings = field(default_factory=DeliverySettings)

    @staticmethod
    def _load_yaml(path: Path) -> dict:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def _deep_merge(cls, base: dict, overlay: dict) -> dict:
        merged = dict(base)
        for k, v in (overlay or {}).items():
            if isinstance(v, dict) and isinstance(base.get(k), dict):
                merged[k] = cls._deep_merge(base[k], v)
            else:
                merged[k] = v
        return merged

    @classmethod
    def _from_dict(cls, data: dict) -> "Settings":
        return Settings(
            timezone=data.get("timezone"),
            exporter_name=str(data.get("exporter_name") or Settings.exporter_name),
            storage=StorageSettings(**(data.get("storage") or {})),
            autosave=AutosaveSettings(**(data.get("autosave") or {})),
            delivery=DeliverySettings(**(data.get("delivery") or {})),
        )

    @classmethod
    def load(cls, user_path: Optional[Path] = None) -> "Settings":
        """Load settings from built-in defaults and optional user override file.

        If user_path is provided and exists, overlay values onto defaults.
        """
        try:
            with resources.files("fiquest").joinpath("default_settings.yaml").open("r", encoding="utf-8") as f:
                default_data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Default settings not found; falling back to dataclass defaults.")
            default_data = dataclasses.asdict(Settings())

        user_data = {}
        if user_path is not None:
            if user_path.exists():
                user_data = cls._load_yaml(user_path)
                logger.info("Loaded user settings from %s", user_path)
            else:
                logger.warning("User settings file not found: %s", user_path)

        merged = cls._deep_merge(default_data, user_data)
        settings = cls._from_dict(merged)
        logger.debug("Settings merged: %s", settings)
        return settings

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(dataclasses.asdict(self), f, sort_keys=False)
        logger.info("Saved settings to %s", path)
