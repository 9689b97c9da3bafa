from __future__ import annotations

import json

import pytest

from fleetdesk import config
from fleetdesk.models import CategoryBucket, StandardFleet, UnitInstance
from fleetdesk.services import catalog, roster

SHIPS = [
    {"api_id": 11, "api_ship_id": 78, "api_lv": 99, "api_karyoku": [90, 99], "api_maxhp": 82},
    {"api_id": 12, "api_ship_id": 1, "api_lv": 45},
    {"api_id": 13, "api_ship_id": 2, "api_lv": 99},
]

REFERENCE = catalog.build_catalog(
    {
        "api_mst_ship": [
            {"api_id": 1, "api_name": "Mutsuki", "api_stype": 2},
            {"api_id": 2, "api_name": "Kisaragi", "api_stype": 2},
            {"api_id": 78, "api_name": "Kongou", "api_stype": 9},
        ],
        "api_mst_stype": [{"api_id": 2, "api_name": "Destroyer"}, {"api_id": 9, "api_name": "Battleship"}],
    }
)


def test_plain_array_import() -> None:
    imported = roster.import_roster(json.dumps(SHIPS))

    assert not imported.synthesized_ids
    assert [unit.instance_id for unit in imported.units] == [11, 12, 13]
    kongou = imported.units[0]
    assert (kongou.reference_id, kongou.level, kongou.firepower, kongou.hp) == (78, 99, 90, 82)
    assert kongou.torpedo is None


def test_marked_envelope_import() -> None:
    text = "svdata=" + json.dumps({"api_result": 1, "api_data": {"api_ship": SHIPS}})

    imported = roster.import_roster(text)

    assert len(imported.units) == 3


def test_missing_ids_are_synthesized_from_position() -> None:
    rows = [{"api_ship_id": 1, "api_lv": 3}, {"api_ship_id": 2, "api_lv": 5}]

    imported = roster.import_roster(json.dumps(rows))

    assert imported.synthesized_ids
    assert [unit.instance_id for unit in imported.units] == [
        config.SYNTHETIC_ID_BASE,
        config.SYNTHETIC_ID_BASE + 1,
    ]
    assert roster.units_to_payload(imported.units)[1]["api_id"] == config.SYNTHETIC_ID_BASE + 1


def test_synthesized_ids_skip_ids_carried_by_other_rows() -> None:
    base = config.SYNTHETIC_ID_BASE
    rows = [
        {"api_ship_id": 1, "api_lv": 10},
        {"api_id": base, "api_ship_id": 2, "api_lv": 99},
        {"api_id": base + 1, "api_ship_id": 3, "api_lv": 50},
    ]

    imported = roster.import_roster(json.dumps(rows))

    by_id = roster.index_units(imported.units)
    assert imported.synthesized_ids
    assert len(imported.units) == 3
    assert (by_id[base].reference_id, by_id[base].level) == (2, 99)
    assert by_id[base + 1].reference_id == 3
    assert by_id[base + 2].reference_id == 1


def test_noise_around_payload_is_tolerated() -> None:
    text = "copied from tool:\n" + json.dumps(SHIPS) + "\n-- end --"

    imported = roster.import_roster(text)

    assert [unit.instance_id for unit in imported.units] == [11, 12, 13]


@pytest.mark.parametrize("text", ["", "svdata=", "not json at all", '{"api_data": {}}', "[1, 2"])
def test_unusable_text_raises(text) -> None:
    with pytest.raises(roster.RosterImportError):
        roster.import_roster(text)


def test_repeated_instances_are_skipped() -> None:
    imported = roster.normalize_units([SHIPS[0], SHIPS[0], "junk", SHIPS[1]])

    assert [unit.instance_id for unit in imported.units] == [11, 12]


def test_reimport_refreshes_level() -> None:
    first = roster.import_roster(json.dumps(SHIPS)).units
    levelled = [dict(SHIPS[1], api_lv=60)]

    second = roster.import_roster(json.dumps(levelled)).units

    assert roster.index_units(first)[12].level == 45
    assert roster.index_units(second)[12].level == 60


def test_sort_modes() -> None:
    units = roster.units_from_payload(SHIPS)

    by_level = roster.sort_units(units, roster.SortMode.LEVEL, REFERENCE)
    by_category = roster.sort_units(units, roster.SortMode.CATEGORY, REFERENCE)
    by_reference = roster.sort_units(units, roster.SortMode.REFERENCE, REFERENCE)

    assert [unit.instance_id for unit in by_level] == [13, 11, 12]
    assert [unit.instance_id for unit in by_category] == [13, 12, 11]
    assert [unit.instance_id for unit in by_reference] == [12, 13, 11]


def test_rows_mark_used_units_and_bonus_text() -> None:
    units = roster.units_from_payload(SHIPS)
    buckets = (CategoryBucket("Destroyers", frozenset({2})),)

    rows = roster.roster_rows(
        units, REFERENCE, buckets, "Destroyers", roster.SortMode.LEVEL, {13}, {1: "E-1"}
    )

    assert [(row.name, row.is_used, row.bonus_text) for row in rows] == [
        ("Kisaragi", True, ""),
        ("Mutsuki", False, "E-1"),
    ]
    assert rows[0].category == "Destroyer"


def test_total_level_skips_unknown_units() -> None:
    units_by_id = roster.index_units(roster.units_from_payload(SHIPS))
    fleet = StandardFleet.from_flat([11, None, 12, 999])

    assert roster.total_level(fleet, units_by_id) == 144


def test_owned_categories() -> None:
    units = list(roster.units_from_payload(SHIPS)) + [UnitInstance(instance_id=1, reference_id=4040)]

    assert roster.owned_category_ids(units, REFERENCE) == [2, 9]
