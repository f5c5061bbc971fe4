"""Key names in the key/value store.

Everything FIQuest writes lives under the ``fiquest_`` prefix so a logout can
clear it without touching other data sharing the store.
"""

NAMESPACE_PREFIX = "fiquest_"

CURRENT_PLAYER_KEY = "fiquest_current_player"
PLAYER_KEY_PREFIX = "fiquest_player_"
BACKUP_KEY_PREFIX = "fiquest_backup_"

SCENARIOS_KEY = "fiquest_scenarios"
ACTIVE_SCENARIO_KEY = "fiquest_active_scenario"
NET_WORTH_SETUP_KEY = "fiquest_net_worth_setup"
NET_WORTH_HISTORY_KEY = "fiquest_net_worth_history"
CURRENT_NET_WORTH_KEY = "fiquest_current_net_worth"

# Envelope gameData field -> store key, in export order
GAME_DATA_KEYS = {
    "scenarios": SCENARIOS_KEY,
    "activeScenario": ACTIVE_SCENARIO_KEY,
    "netWorthSetup": NET_WORTH_SETUP_KEY,
    "netWorthHistory": NET_WORTH_HISTORY_KEY,
    "currentNetWorth": CURRENT_NET_WORTH_KEY,
}


def player_key(player_name: str) -> str:
    return f"{PLAYER_KEY_PREFIX}{player_name.lower()}"


def backup_key(timestamp_ms: int) -> str:
    return f"{BACKUP_KEY_PREFIX}{timestamp_ms}"
