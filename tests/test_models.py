from __future__ import annotations

import pytest

from fiquest.errors import EntryValidationError, ProfileValidationError
from fiquest.models import GameData, NetWorthEntry, PlayerProfile, Preferences, Totals, normalize_accounts


def test_totals_from_accounts():
    totals = Totals.from_accounts(
        {
            "assets": {"cash": {"actual": 1000, "projected": 800}, "brokerage": {"actual": 5000, "projected": 6000}},
            "liabilities": {"card": {"actual": 300, "projected": 0}},
        }
    )

    assert totals.total_assets == 6000
    assert totals.total_liabilities == 300
    assert totals.net_worth == 5700
    assert totals.projected_net_worth == 6800
    assert totals.net_variance == -1100
    assert totals.asset_variance == -800
    assert totals.liability_variance == 300


def test_missing_amounts_count_as_zero():
    totals = Totals.from_accounts({"assets": {"house": {"actual": 10}}, "liabilities": {}})

    assert totals.projected_net_worth == 0
    assert totals.net_variance == 10


@pytest.mark.parametrize(
    "accounts",
    [
        None,
        [],
        {"assets": []},
        {"assets": {"cash": 5}},
        {"assets": {"cash": {"actual": "100"}}},
        {"liabilities": {"loan": {"actual": True}}},
    ],
)
def test_normalize_accounts_rejects_bad_shapes(accounts):
    with pytest.raises(EntryValidationError):
        normalize_accounts(accounts)


def test_normalize_accounts_fills_sections_and_copies():
    raw = {"assets": {"cash": {"actual": 1, "projected": 2, "variance": -1}}}

    cleaned = normalize_accounts(raw)
    cleaned["assets"]["cash"]["actual"] = 99

    assert cleaned["liabilities"] == {}
    assert cleaned["assets"]["cash"]["variance"] == -1
    assert raw["assets"]["cash"]["actual"] == 1


def test_entry_from_dict_recomputes_totals_and_keeps_unknown_fields():
    entry = NetWorthEntry.from_dict(
        {
            "id": "nw_1_abc",
            "date": "2024-01-01",
            "dateCreated": "2024-01-01T00:00:00.000Z",
            "accounts": {"assets": {"cash": {"actual": 10, "projected": 5}}, "liabilities": {}},
            "totals": {"netWorth": 999999},
            "source": "bank-sync",
        }
    )

    assert entry.totals.net_worth == 10
    assert entry.extra == {"source": "bank-sync"}
    data = entry.to_dict()
    assert data["source"] == "bank-sync"
    assert "dateModified" not in data


def test_entry_from_dict_keeps_stored_totals_when_accounts_malformed():
    entry = NetWorthEntry.from_dict({"id": "x", "accounts": {"assets": {"cash": "lots"}}, "totals": {"netWorth": 42}})

    assert entry.totals.net_worth == 42


def test_game_data_without_ledger_is_empty_ledger():
    game_data = GameData.from_dict({"scenarios": [{"name": "Lean FI"}]})

    assert game_data.net_worth_tracking == []
    assert game_data.preferences == Preferences("USD", "MM/DD/YYYY")


def test_game_data_rejects_non_list_ledger():
    with pytest.raises(ProfileValidationError):
        GameData.from_dict({"netWorthTracking": {"not": "a list"}})


def test_non_object_preferences_and_totals_are_rejected():
    with pytest.raises(ProfileValidationError):
        Preferences.from_dict(["USD"])
    with pytest.raises(ProfileValidationError):
        Totals.from_dict([1, 2])
    with pytest.raises(ProfileValidationError):
        NetWorthEntry.from_dict({"id": "x", "accounts": {"assets": "cash"}, "totals": [42]})


def test_profile_requires_name():
    with pytest.raises(ProfileValidationError):
        PlayerProfile.from_dict({"playerName": "   "})
    with pytest.raises(ProfileValidationError):
        PlayerProfile.from_dict({"gameData": {}})
    with pytest.raises(ProfileValidationError):
        PlayerProfile.from_dict("Alice")


def test_profile_round_trip_keeps_extra_fields():
    data = {
        "playerName": "Alice",
        "createdDate": "2024-01-01T00:00:00.000Z",
        "password": "hunter2",
        "lastPlayedDate": "2024-02-01T00:00:00.000Z",
        "lastPlayedLocal": "2/1/2024",
        "timezone": "UTC",
        "gameData": {"scenarios": [{"name": "Fat FI"}], "preferences": {"currency": "EUR"}},
    }

    profile = PlayerProfile.from_dict(data)
    again = profile.to_dict()

    assert profile.storage_name == "alice"
    assert again["createdDate"] == "2024-01-01T00:00:00.000Z"
    assert again["password"] == "hunter2"
    assert again["gameData"]["preferences"] == {"currency": "EUR", "dateFormat": "MM/DD/YYYY"}
    assert "password" not in profile.to_dict(include_sensitive=False)
