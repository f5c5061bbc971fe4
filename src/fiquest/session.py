from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from .clock import Clock
from .errors import NoActivePlayerError, ProfileValidationError, StorageError
from .ledger import NetWorthLedger
from .models import PlayerProfile
from .persistence import keys
from .persistence.store import KeyValueStore
from .utils.jsonutil import compact_dumps

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the single active PlayerProfile and every read/write of the store.

    Game-data sub-objects (scenarios, active scenario, net worth setup) live in
    their own store keys while the player is active, because the planning pages
    read and write them directly. ``load_player_game_data`` mirrors the profile
    out to those keys and ``save_player_data`` collects them back in.
    """

    def __init__(self, store: KeyValueStore, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock = clock or Clock()
        self._current: Optional[PlayerProfile] = None
        self._lock = threading.RLock()

    # --- Session state ---
    @property
    def current_player(self) -> Optional[PlayerProfile]:
        return self._current

    def is_logged_in(self) -> bool:
        return self._current is not None

    def require_player(self) -> PlayerProfile:
        if self._current is None:
            raise NoActivePlayerError("No user logged in")
        return self._current

    def require_login(self) -> bool:
        """True when a player is active; callers redirect to the start screen otherwise."""
        if not self.is_logged_in():
            logger.info("No active player; login required")
            return False
        return True

    @contextmanager
    def transaction(self) -> Iterator["SessionManager"]:
        """Hold the session lock so timer-driven saves wait until the block is done."""
        with self._lock:
            yield self

    def start(self) -> bool:
        """Load-on-start: restore whichever player the store marks as current."""
        name = self.store.get_item(keys.CURRENT_PLAYER_KEY)
        if not name:
            logger.debug("No current player recorded in store")
            return False
        return self.load_player(name)

    def login(self, player_name: str) -> PlayerProfile:
        """Load the named player, creating a fresh profile when none is stored."""
        name = (player_name or "").strip()
        if not name:
            raise ProfileValidationError("Player name must not be empty")
        if not self.load_player(name):
            local = self.clock.local()
            profile = PlayerProfile(player_name=name, extra={"createdDate": local.iso})
            profile.touch(local)
            self.persist_profile(profile)
            self.activate(profile)
            self.load_player_game_data()
            logger.info("Created new player: %s", name)
        return self.require_player()

    def load_player(self, player_name: str) -> bool:
        raw = self.store.get_item(keys.player_key(player_name))
        if not raw:
            return False
        try:
            profile = PlayerProfile.from_dict(json.loads(raw))
        except (json.JSONDecodeError, ProfileValidationError) as exc:
            logger.error("Error loading player %s: %s", player_name, exc)
            return False
        with self._lock:
            self._current = profile
            try:
                self.store.set_item(keys.CURRENT_PLAYER_KEY, profile.storage_name)
                self.load_player_game_data()
            except StorageError as exc:
                logger.error("Loaded player %s but could not mirror game data: %s", player_name, exc)
        logger.info("Loaded player: %s", profile.player_name)
        return True

    def activate(self, profile: PlayerProfile) -> None:
        """Make ``profile`` the active session. Raises StorageError if the marker write fails."""
        with self._lock:
            self.store.set_item(keys.CURRENT_PLAYER_KEY, profile.storage_name)
            self._current = profile

    def persist_profile(self, profile: PlayerProfile) -> None:
        """Write the profile under its name key. Raises StorageError."""
        self.store.set_json(keys.player_key(profile.player_name), profile.to_dict())

    # --- Mirroring between profile and store ---
    def _mirror(self, key: str, value: Any) -> None:
        if value:
            self.store.set_json(key, value)
        else:
            self.store.remove_item(key)

    def load_player_game_data(self) -> None:
        """Copy the active profile's sub-objects into their store keys, clearing empty ones."""
        if self._current is None:
            return
        game_data = self._current.game_data
        self._mirror(keys.SCENARIOS_KEY, game_data.scenarios)
        self._mirror(keys.ACTIVE_SCENARIO_KEY, game_data.active_scenario)
        self._mirror(keys.NET_WORTH_SETUP_KEY, game_data.net_worth_setup)

    def save_player_data(self) -> bool:
        """Collect store keys into the profile, stamp it and persist it.

        Idempotent; autosave, unload and explicit saves all land here. Returns
        False (after logging) when the store rejects the write.
        """
        with self._lock:
            profile = self._current
            if profile is None:
                return False
            try:
                scenarios = self.store.get_json(keys.SCENARIOS_KEY)
                # Ledger and preferences are owned by the profile, not mirrored
                game_data = profile.game_data
                game_data.scenarios = scenarios if isinstance(scenarios, list) else []
                game_data.active_scenario = self.store.get_json(keys.ACTIVE_SCENARIO_KEY)
                game_data.net_worth_setup = self.store.get_json(keys.NET_WORTH_SETUP_KEY)
                profile.touch(self.clock.local())
                self.persist_profile(profile)
            except StorageError as exc:
                logger.error("Error saving player data: %s", exc)
                return False
        logger.debug("Saved player data for %s", profile.player_name)
        return True

    # --- Sub-resources and queries ---
    @property
    def ledger(self) -> NetWorthLedger:
        profile = self.require_player()
        return NetWorthLedger(profile.game_data, self.clock, on_change=self.save_player_data, lock=self._lock)

    def get_stored_data(self, key: str) -> Any:
        return self.store.get_json(key)

    def has_completed_initial_setup(self) -> bool:
        if self._current is None:
            return False
        if self._current.game_data.net_worth_setup:
            return True
        return bool(self.store.get_json(keys.NET_WORTH_SETUP_KEY))

    def data_management_info(self) -> Optional[Dict[str, Any]]:
        """Sizes (KB) and counts shown on the data management page."""
        profile = self._current
        if profile is None:
            return None
        scenarios = self.get_stored_data(keys.SCENARIOS_KEY) or []
        entries = [e.to_dict() for e in profile.game_data.net_worth_tracking]
        player_size = len(compact_dumps(profile.to_dict()))
        game_size = len(compact_dumps({"scenarios": scenarios, "netWorth": entries}))
        return {
            "playerName": profile.player_name,
            "lastPlayed": profile.last_played_date,
            "dataSize": {
                "player": round(player_size / 1024, 2),
                "game": round(game_size / 1024, 2),
                "total": round((player_size + game_size) / 1024, 2),
            },
            "counts": {
                "scenarios": len(scenarios),
                "netWorthEntries": len(entries),
            },
            "hasSetup": self.has_completed_initial_setup(),
        }

    def clear_all_data(self) -> int:
        """Drop the active profile and every ``fiquest_`` key. Returns the number removed."""
        with self._lock:
            self._current = None
            removed = 0
            for key in self.store.keys():
                if key.startswith(keys.NAMESPACE_PREFIX):
                    self.store.remove_item(key)
                    removed += 1
        logger.info("All FIQuest data cleared from store (%s keys)", removed)
        return removed
