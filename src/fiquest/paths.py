from __future__ import annotations

import logging
import os
from pathlib import Path

from platformdirs import PlatformDirs

logger = logging.getLogger(__name__)

APP_NAME = "FIQuest"

# Environment variable override (useful for tests and power users)
ENV_DATA_DIR = "FIQUEST_DATA_DIR"


def default_data_dir() -> Path:
    """Return the platform-specific data directory for the local store and exports.

    FIQUEST_DATA_DIR takes precedence over the platformdirs location.
    """
    override = os.getenv(ENV_DATA_DIR)
    if override:
        return Path(override).expanduser().resolve()
    dirs = PlatformDirs(appname=APP_NAME, appauthor=False)
    return Path(dirs.user_data_dir).expanduser().resolve()


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path
