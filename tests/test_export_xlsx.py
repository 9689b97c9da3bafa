from __future__ import annotations

from io import BytesIO

from openpyxl import Workbook, load_workbook

from fleetdesk.models import BonusGroup, CombinedFleet, Deck, StandardFleet
from fleetdesk.routers.export_xlsx import _append_bonus_sheet, _append_fleet_sheet
from fleetdesk.services import catalog, roster

REFERENCE = catalog.build_catalog(
    {
        "api_mst_ship": [{"api_id": 78, "api_name": "Kongou", "api_stype": 9}],
        "api_mst_stype": [{"api_id": 9, "api_name": "Battleship"}],
    }
)
UNITS = roster.index_units(roster.units_from_payload([{"api_id": 11, "api_ship_id": 78, "api_lv": 99}]))


def test_fleet_sheet_lists_every_slot() -> None:
    workbook = Workbook()
    decks = (Deck("A", StandardFleet.from_flat([11, 404])), Deck("B", CombinedFleet()))

    _append_fleet_sheet(workbook, "event", decks, UNITS, REFERENCE, {78: "x1.5"})

    sheet = workbook["Fleets"]
    assert sheet["A1"].value == "Fleet set: event"
    rows = list(sheet.iter_rows(min_row=3, values_only=True))
    assert rows[0] == ("A", "Main", 1, "Kongou", "Battleship", 99, "x1.5")
    assert rows[1][3] == "#404"
    assert rows[6] == ("A", "", "", "Total level", "", 99, "")
    escort_rows = [row for row in rows if row[0] == "B" and row[1] == "Escort"]
    assert len(escort_rows) == 6


def test_bonus_sheet_names_members() -> None:
    workbook = Workbook()
    groups = (BonusGroup(id="a", text="E-1", member_ids=(78, 5)),)

    _append_bonus_sheet(workbook, groups, REFERENCE)

    assert workbook["Bonus"]["B2"].value == "Kongou, ID:5"


def test_export_endpoint_returns_workbook(client, auth_headers) -> None:
    client.post("/api/ships", json=[{"api_id": 11, "api_ship_id": 78, "api_lv": 99}], headers=auth_headers)
    client.post(
        "/api/decks",
        json={"event": [{"name": "A", "type": "standard", "ships": [11, None, None, None, None, None]}]},
        headers=auth_headers,
    )

    response = client.get("/api/export/xlsx", params={"set": "event"}, headers=auth_headers)

    assert response.status_code == 200
    workbook = load_workbook(BytesIO(response.content))
    assert workbook.sheetnames == ["Fleets", "Bonus"]
    assert workbook["Fleets"]["D3"].value == "ID:78"


def test_export_unknown_set(client, auth_headers) -> None:
    response = client.get("/api/export/xlsx", params={"set": "nope"}, headers=auth_headers)

    assert response.status_code == 404
