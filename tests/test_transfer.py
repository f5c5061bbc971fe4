from __future__ import annotations

import json
import threading
from unittest import mock

import pytest

from fiquest.errors import NoActivePlayerError, StorageError, UnsupportedFormatError
from fiquest.persistence import keys
from fiquest.persistence.store import MemoryStore
from fiquest.persistence.transfer import DataTransfer
from fiquest.session import SessionManager


@pytest.fixture()
def transfer(session: SessionManager) -> DataTransfer:
    return DataTransfer(session)


def seed_player(session: SessionManager, name: str = "Alice") -> None:
    session.login(name)
    session.store.set_json(keys.SCENARIOS_KEY, [{"name": f"{name}'s plan", "targetAmount": 1000000}])
    session.store.set_json(keys.ACTIVE_SCENARIO_KEY, {"name": f"{name}'s plan"})
    session.ledger.add({"date": "2024-01-01", "accounts": {"assets": {"cash": {"actual": 100, "projected": 90}}}})
    session.ledger.add({"date": "2024-02-01", "accounts": {"assets": {"cash": {"actual": 150, "projected": 120}}}})


def snapshot(store: MemoryStore) -> dict:
    return {key: store.get_item(key) for key in store.keys()}


def test_export_requires_player(transfer: DataTransfer):
    with pytest.raises(NoActivePlayerError):
        transfer.export_all()


def test_export_rejects_unknown_format(session, transfer: DataTransfer):
    session.login("Alice")

    with pytest.raises(UnsupportedFormatError):
        transfer.export_all("xml")
    with pytest.raises(UnsupportedFormatError):
        transfer.export_all("csv", obfuscate=True)


def test_export_forces_save_first(session, transfer: DataTransfer, store):
    seed_player(session)
    store.set_json(keys.SCENARIOS_KEY, [{"name": "edited after last save"}])

    data = json.loads(transfer.export_all())

    assert data["playerData"]["gameData"]["scenarios"] == [{"name": "edited after last save"}]
    assert data["gameData"]["scenarios"] == [{"name": "edited after last save"}]
    assert "password" not in data["playerData"]


def test_export_filename(session, transfer: DataTransfer):
    session.login("Mary-Jane 2")

    assert transfer.export_filename() == "fiquest_maryjane2_030524.json"
    assert transfer.export_filename("json", obfuscated=True) == "fiquest_maryjane2_030524_encrypted.json"


@pytest.mark.parametrize("obfuscated", [False, True])
def test_round_trip_into_fresh_store(session, transfer: DataTransfer, clock, obfuscated):
    seed_player(session)
    original = session.current_player
    payload = transfer.export_all("json", obfuscate=obfuscated)

    other = SessionManager(MemoryStore(), clock)
    result = DataTransfer(other).import_all(payload, is_obfuscated=obfuscated)

    assert result.success, result.message
    assert result.player_name == "Alice"
    assert result.backup_key is None
    imported = other.current_player
    assert imported.player_name == original.player_name
    assert imported.game_data.scenarios == original.game_data.scenarios
    assert [e.id for e in imported.game_data.net_worth_tracking] == [e.id for e in original.game_data.net_worth_tracking]
    assert other.store.get_item(keys.CURRENT_PLAYER_KEY) == "alice"
    assert other.store.get_json(keys.ACTIVE_SCENARIO_KEY) == {"name": "Alice's plan"}


def test_import_over_existing_player_removes_backup(session, transfer: DataTransfer, clock):
    source = SessionManager(MemoryStore(), clock)
    seed_player(source, "Bob")
    payload = DataTransfer(source).export_all()
    seed_player(session, "Alice")

    result = transfer.import_all(payload)

    assert result.success
    assert session.current_player.player_name == "Bob"
    assert transfer.list_backups() == []
    # Alice's own record is still in the store
    assert session.store.get_item("fiquest_player_alice") is not None


def test_missing_player_name_leaves_everything_untouched(session, transfer: DataTransfer, store):
    seed_player(session)
    before = snapshot(store)
    player_before = session.current_player

    result = transfer.import_all(json.dumps({"version": "1.0.0", "playerData": {"gameData": {}}}))

    assert not result.success
    assert result.code == "INVALID"
    assert snapshot(store) == before
    assert session.current_player is player_before


def test_decode_failure_is_distinguishable(session, transfer: DataTransfer, store):
    seed_player(session)
    plain = transfer.export_all()
    before = snapshot(store)

    result = transfer.import_all(plain, is_obfuscated=True)

    assert not result.success
    assert result.code == "DECODE_FAILED"
    assert "decrypt" in result.message
    assert snapshot(store) == before


def test_unknown_version_imports_with_warning(session, transfer: DataTransfer):
    seed_player(session)
    data = json.loads(transfer.export_all())
    data["version"] = "9.9.9"

    result = transfer.import_all(json.dumps(data))

    assert result.success
    assert any("9.9.9" in w for w in result.warnings)
    assert result.to_dict()["warnings"] == result.warnings


def test_omitted_game_data_keys_are_left_alone(session, transfer: DataTransfer, store):
    seed_player(session)
    data = json.loads(transfer.export_all())
    data["gameData"] = {"scenarios": [{"name": "imported"}]}

    result = transfer.import_all(data)

    assert result.success
    assert store.get_json(keys.SCENARIOS_KEY) == [{"name": "imported"}]
    assert store.get_json(keys.ACTIVE_SCENARIO_KEY) == {"name": "Alice's plan"}


def test_apply_failure_keeps_backup_and_old_session(session, transfer: DataTransfer, store, clock):
    source = SessionManager(MemoryStore(), clock)
    seed_player(source, "Bob")
    payload = DataTransfer(source).export_all()
    seed_player(session, "Alice")
    alice = session.current_player
    scenarios_before = store.get_item(keys.SCENARIOS_KEY)

    with mock.patch.object(session, "persist_profile", side_effect=StorageError("quota exceeded")):
        result = transfer.import_all(payload)

    assert not result.success
    assert result.code == "APPLY_FAILED"
    assert result.backup_key is not None
    assert result.backup_key in result.message
    assert transfer.list_backups() == [result.backup_key]
    assert session.current_player is alice
    assert store.get_item(keys.CURRENT_PLAYER_KEY) == "alice"
    assert store.get_item(keys.SCENARIOS_KEY) == scenarios_before
    assert store.get_item("fiquest_player_bob") is None
    backup = json.loads(store.get_item(result.backup_key))
    assert backup["playerData"]["playerName"] == "Alice"


def test_restore_backup(session, transfer: DataTransfer, store, clock):
    source = SessionManager(MemoryStore(), clock)
    seed_player(source, "Bob")
    payload = DataTransfer(source).export_all()
    seed_player(session, "Alice")
    with mock.patch.object(session, "activate", side_effect=StorageError("boom")):
        failed = transfer.import_all(payload)

    result = transfer.restore_backup(failed.backup_key)

    assert result.success
    assert session.current_player.player_name == "Alice"
    assert transfer.list_backups() == []


def test_restore_unknown_backup(transfer: DataTransfer):
    assert transfer.restore_backup("fiquest_backup_1").code == "NOT_FOUND"
    assert transfer.restore_backup("fiquest_player_alice").code == "NOT_FOUND"


def test_backup_failure_cancels_import(session, transfer: DataTransfer, clock):
    small = SessionManager(MemoryStore(), clock)
    seed_player(small, "Bob")
    payload = DataTransfer(small).export_all()
    seed_player(session, "Alice")
    session.store.quota_bytes = session.store.usage() + 10

    result = transfer.import_all(payload)

    assert not result.success
    assert result.code == "BACKUP_FAILED"
    assert session.current_player.player_name == "Alice"


def test_import_result_to_dict(session, transfer: DataTransfer):
    seed_player(session)

    result = transfer.import_all(transfer.export_all())

    assert result.to_dict() == {
        "success": True,
        "message": "Data imported successfully",
        "playerName": "Alice",
        "importDate": result.import_date,
    }


@pytest.mark.parametrize(
    "envelope",
    [
        {"version": "1.0.0", "playerData": {"playerName": "Bob"}, "metadata": [1, 2]},
        {"version": "1.0.0", "playerData": {"playerName": "Bob"}, "metadata": "abc"},
        {"version": "1.0.0", "playerData": {"playerName": "Bob", "gameData": {"preferences": ["x"]}}},
        {
            "version": "1.0.0",
            "playerData": {
                "playerName": "Bob",
                "gameData": {"netWorthTracking": [{"id": "nw_1", "accounts": {"assets": "cash"}, "totals": [1]}]},
            },
        },
    ],
)
def test_malformed_envelope_is_reported_not_raised(session, transfer: DataTransfer, store, envelope):
    seed_player(session)
    before = snapshot(store)

    result = transfer.import_all(json.dumps(envelope))

    assert not result.success
    assert result.code == "INVALID"
    assert snapshot(store) == before
    assert session.current_player.player_name == "Alice"


def test_unexpected_parse_error_is_reported_not_raised(session, transfer: DataTransfer):
    seed_player(session)
    payload = transfer.export_all()

    with mock.patch("fiquest.persistence.transfer.PlayerProfile.from_dict", side_effect=TypeError("odd shape")):
        result = transfer.import_all(payload)

    assert result.code == "INVALID"
    assert "odd shape" in result.message


class HookedStore(MemoryStore):
    """Calls ``on_set(key)`` after every successful write."""

    def __init__(self) -> None:
        super().__init__()
        self.on_set = None

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        if self.on_set is not None:
            self.on_set(key)


def test_autosave_during_import_waits_until_new_player_is_active(clock):
    source = SessionManager(MemoryStore(), clock)
    seed_player(source, "Bob")
    payload = DataTransfer(source).export_all()
    store = HookedStore()
    session = SessionManager(store, clock)
    seed_player(session, "Alice")
    alice_scenarios = store.get_json(keys.SCENARIOS_KEY)
    timers = []
    saved = []

    def autosave_mid_import(key):
        if key == keys.SCENARIOS_KEY and not timers:
            timer = threading.Thread(target=lambda: saved.append(session.save_player_data()))
            timers.append(timer)
            timer.start()
            timer.join(0.2)

    store.on_set = autosave_mid_import
    result = DataTransfer(session).import_all(payload)
    timers[0].join(5)

    assert result.success
    assert saved == [True]
    assert store.get_json("fiquest_player_alice")["gameData"]["scenarios"] == alice_scenarios
    assert store.get_json("fiquest_player_bob")["gameData"]["scenarios"] == [{"name": "Bob's plan", "targetAmount": 1000000}]
