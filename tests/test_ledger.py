from __future__ import annotations

import random
import re

import pytest

from fiquest.errors import UnsupportedFormatError
from fiquest.ledger import NetWorthLedger, merge_entry, parse_entry_date
from fiquest.models import GameData


def accounts(cash=100, cash_projected=90, **liabilities):
    return {
        "assets": {"cash": {"actual": cash, "projected": cash_projected}},
        "liabilities": {name: {"actual": amount, "projected": amount} for name, amount in liabilities.items()},
    }


@pytest.fixture()
def saves():
    return []


@pytest.fixture()
def ledger(clock, saves):
    return NetWorthLedger(GameData(), clock, on_change=lambda: saves.append(1), rng=random.Random(7))


def test_add_computes_totals(ledger):
    entry = ledger.add({"date": "2024-01-01", "accounts": {"assets": {"cash": {"actual": 100, "projected": 90}}, "liabilities": {}}})

    assert entry.totals.to_dict() == {
        "totalAssets": 100,
        "totalLiabilities": 0,
        "netWorth": 100,
        "projectedNetWorth": 90,
        "netVariance": 10,
        "assetVariance": 10,
        "liabilityVariance": 0,
    }


def test_add_stamps_system_fields_and_ignores_caller_totals(ledger, saves):
    entry = ledger.add({"accounts": accounts(), "totals": {"netWorth": -1}, "dateCreated": "1999"})

    assert re.fullmatch(r"nw_\d+_[0-9a-z]{9}", entry.id)
    assert entry.date == "3/5/2024"
    assert entry.date_created.startswith("2024-03-05T14:30:15")
    assert entry.timezone == "UTC"
    assert entry.totals.net_worth == 100
    assert saves == [1]


def test_add_rejects_bad_accounts(ledger, saves):
    assert ledger.add({"accounts": {"assets": {"cash": {"actual": "lots"}}}}) is None
    assert ledger.add("not a mapping") is None
    assert len(ledger) == 0
    assert saves == []


def test_list_sorted_newest_first(ledger):
    ledger.add({"date": "2024-02-01", "accounts": accounts()})
    ledger.add({"date": "2024-01-01", "accounts": accounts()})
    ledger.add({"date": "2024-03-01", "accounts": accounts()})

    assert [e.date for e in ledger.list()] == ["2024-03-01", "2024-02-01", "2024-01-01"]
    assert ledger.latest().date == "2024-03-01"


def test_mixed_date_formats_sort_chronologically(ledger):
    ledger.add({"date": "1/15/2024", "accounts": accounts()})
    ledger.add({"date": "2023-12-31", "accounts": accounts()})
    ledger.add({"date": "2024-02-01", "accounts": accounts()})

    assert [e.date for e in ledger.list()] == ["2024-02-01", "1/15/2024", "2023-12-31"]


def test_unparseable_dates_sink_to_the_end(ledger):
    ledger.add({"date": "someday", "accounts": accounts()})
    ledger.add({"date": "2024-01-01", "accounts": accounts()})

    assert [e.date for e in ledger.list()] == ["2024-01-01", "someday"]


def test_list_returns_copies(ledger):
    ledger.add({"date": "2024-01-01", "accounts": accounts()})

    listed = ledger.list()
    listed[0].notes = "changed"
    listed.clear()

    assert len(ledger) == 1
    assert ledger.list()[0].notes == ""


def test_update_merges_and_recomputes(ledger):
    entry = ledger.add({"date": "2024-01-01", "accounts": accounts(), "notes": "first"})

    updated = ledger.update(
        entry.id,
        {"accounts": accounts(cash=500, cash_projected=400, loan=50), "id": "hijack", "dateCreated": "never", "totals": {}},
    )

    assert updated.id == entry.id
    assert updated.date_created == entry.date_created
    assert updated.notes == "first"
    assert updated.date == "2024-01-01"
    assert updated.totals.net_worth == 450
    assert updated.totals.projected_net_worth == 350
    assert updated.date_modified is not None
    assert ledger.get(entry.id).totals.net_worth == 450


def test_update_resorts(ledger):
    old = ledger.add({"date": "2024-01-01", "accounts": accounts()})
    ledger.add({"date": "2024-02-01", "accounts": accounts()})

    ledger.update(old.id, {"date": "2024-03-01"})

    assert [e.id for e in ledger.list()][0] == old.id


def test_update_unknown_id_is_none(ledger, saves):
    assert ledger.update("nw_missing", {"notes": "x"}) is None
    assert saves == []


def test_update_with_bad_accounts_leaves_entry_alone(ledger):
    entry = ledger.add({"date": "2024-01-01", "accounts": accounts()})

    assert ledger.update(entry.id, {"accounts": {"assets": {"cash": {"actual": None, "projected": "x"}}}}) is None
    assert ledger.get(entry.id).totals.net_worth == 100


def test_merge_entry_keeps_unknown_patch_fields(ledger):
    entry = ledger.add({"date": "2024-01-01", "accounts": accounts()})

    merged = merge_entry(entry, {"source": "manual"}, "2024-05-01T00:00:00.000Z")

    assert merged.extra == {"source": "manual"}
    assert merged.date_modified == "2024-05-01T00:00:00.000Z"


def test_delete(ledger, saves):
    entry = ledger.add({"date": "2024-01-01", "accounts": accounts()})

    assert ledger.delete(entry.id) is True
    assert ledger.delete(entry.id) is False
    assert ledger.list() == []
    assert saves == [1, 1]


def test_bulk_import_counts_and_never_aborts(ledger, saves):
    result = ledger.bulk_import(
        [
            {"date": "2024-01-01", "accounts": accounts()},
            {"date": "2024-02-01", "accounts": "garbage"},
            {"date": "2024-03-01", "accounts": accounts(cash=10, cash_projected=10)},
            42,
        ]
    )

    assert (result.success_count, result.error_count) == (2, 2)
    assert result.to_dict() == {"success": 2, "errors": 2}
    assert [e.date for e in ledger.list()] == ["2024-03-01", "2024-01-01"]
    assert saves == [1]


def test_ids_are_unique(ledger):
    ids = {ledger.add({"accounts": accounts()}).id for _ in range(20)}

    assert len(ids) == 20


def test_export_formats(ledger):
    ledger.add({"date": "2024-01-01", "accounts": accounts(card=25), "notes": "jan"})

    as_json = ledger.export("json")
    as_csv = ledger.export("csv")
    tables = ledger.export("excel")

    assert as_json[0]["totals"]["netWorth"] == 75
    header, row = as_csv.split("\n")
    assert header.endswith('"cash_actual","cash_projected","cash_variance","card_actual","card_projected","card_variance"')
    assert row.startswith('"2024-01-01","100","25","75","65","10","jan"')
    assert tables["summary"]["data"][0]["Net Worth"] == 75
    assert [(r["Type"], r["Account"]) for r in tables["detailed"]["data"]] == [("Asset", "cash"), ("Liability", "card")]

    with pytest.raises(UnsupportedFormatError):
        ledger.export("xml")


def test_export_csv_empty_ledger(ledger):
    assert ledger.export("csv") == ""


def test_parse_entry_date():
    assert parse_entry_date("2024-01-31").day == 31
    assert parse_entry_date("1/31/2024").month == 1
    assert parse_entry_date("2024-01-31T10:00:00Z").hour == 10
    assert parse_entry_date("") is None
    assert parse_entry_date(None) is None
    assert parse_entry_date("31.01.2024") is None
