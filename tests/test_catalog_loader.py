from __future__ import annotations

import json

import pytest

from fleetdesk.services import catalog

TABLES = {
    "api_mst_ship": [
        {"api_id": 1, "api_name": "Mutsuki", "api_stype": 2, "api_sortno": 31},
        {"api_id": 2, "api_name": "Kisaragi", "api_stype": 2, "api_sortno": 32},
        {"api_id": 78, "api_name": "Kongou", "api_stype": 9, "api_sort_id": 1},
        {"api_id": 1501, "api_name": "I-class", "api_stype": 2},
        {"api_name": "no id"},
    ],
    "api_mst_stype": [
        {"api_id": 2, "api_name": "Destroyer"},
        {"api_id": 9, "api_name": "Battleship"},
    ],
}


def test_plain_tables_are_accepted() -> None:
    tables = catalog.normalize_master_payload({"data": TABLES})

    assert tables["api_mst_ship"] == TABLES["api_mst_ship"]
    assert set(tables) == {"api_mst_ship", "api_mst_stype"}


def test_marked_double_encoded_envelope() -> None:
    raw = "svdata=" + json.dumps({"api_result": 1, "api_data": {**TABLES, "api_mst_slotitem": []}})

    tables = catalog.normalize_master_payload({"data": json.dumps(raw)})

    assert set(tables) == {"api_mst_ship", "api_mst_stype"}
    assert len(tables["api_mst_ship"]) == 5


@pytest.mark.parametrize(
    "payload",
    [
        {"data": "svdata={broken"},
        {"data": {"api_data": {"api_mst_ship": []}}},
        {"data": {"api_mst_stype": TABLES["api_mst_stype"]}},
        {"data": None},
        {"data": [1, 2]},
    ],
)
def test_missing_tables_raise(payload) -> None:
    with pytest.raises(catalog.CatalogError):
        catalog.normalize_master_payload(payload)


def test_load_catalog_fails_closed() -> None:
    assert not catalog.load_catalog("svdata=nonsense")
    assert not catalog.load_catalog({})
    empty = catalog.load_catalog(None)
    assert empty.name_for(78) == "ID:78"
    assert empty.category_name(9) == "ID:9"


def test_catalog_lookups() -> None:
    reference = catalog.load_catalog(TABLES)

    assert reference.name_for(78) == "Kongou"
    assert reference.category_of(78) == 9
    assert reference.category_name(reference.category_of(1)) == "Destroyer"
    assert reference.category_of(404) is None
    assert reference.category_ids([1, 2, 78, 404]) == [2, 9]


def test_taggable_entries_hide_enemy_units_and_follow_sort_order() -> None:
    reference = catalog.load_catalog(TABLES)

    assert [entry.reference_id for entry in reference.taggable_entries()] == [78, 1, 2]
