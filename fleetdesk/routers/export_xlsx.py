from __future__ import annotations

from io import BytesIO
from typing import Mapping, Sequence

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from openpyxl import Workbook

from ..models import BonusGroup, Deck, Section, UnitInstance
from ..security import get_current_user
from ..services import bonus, catalog, fleets, roster
from . import documents

router = APIRouter(prefix="/api/export", tags=["export"])

SECTION_LABELS = {Section.MAIN: "Main", Section.ESCORT: "Escort"}


def _fit_columns(sheet, limit: int) -> None:
    for column_cells in sheet.columns:
        max_length = max(len(str(cell.value or "")) for cell in column_cells)
        column_letter = column_cells[0].column_letter
        sheet.column_dimensions[column_letter].width = min(max_length + 2, limit)


def _append_fleet_sheet(
    workbook: Workbook,
    set_name: str,
    decks: Sequence[Deck],
    units_by_id: Mapping[int, UnitInstance],
    reference: catalog.Catalog,
    bonus_texts: Mapping[int, str],
) -> None:
    sheet = workbook.active
    sheet.title = "Fleets"
    sheet.append([f"Fleet set: {set_name}"])
    sheet.append(["Deck", "Section", "Slot", "Unit", "Category", "Level", "Bonus"])
    for deck in decks:
        for section, slots in enumerate(deck.fleet.sections()):
            for slot_index, instance_id in enumerate(slots, start=1):
                unit = units_by_id.get(instance_id) if instance_id is not None else None
                if instance_id is None:
                    name, category, level, note = "-", "", None, ""
                elif unit is None:
                    name, category, level, note = f"#{instance_id}", "", None, ""
                else:
                    name = reference.name_for(unit.reference_id)
                    category = reference.category_name(reference.category_of(unit.reference_id))
                    level = unit.level
                    note = bonus_texts.get(unit.reference_id, "")
                sheet.append(
                    [deck.name, SECTION_LABELS[Section(section)], slot_index, name, category, level, note]
                )
        sheet.append(
            [deck.name, "", "", "Total level", "", roster.total_level(deck.fleet, units_by_id), ""]
        )
    _fit_columns(sheet, 50)


def _append_bonus_sheet(
    workbook: Workbook, groups: Sequence[BonusGroup], reference: catalog.Catalog
) -> None:
    sheet = workbook.create_sheet("Bonus")
    sheet.append(["Bonus", "Units"])
    for group in groups:
        names = ", ".join(reference.name_for(member) for member in group.member_ids)
        sheet.append([group.text, names])
    _fit_columns(sheet, 80)


@router.get("/xlsx")
def export_xlsx(
    set_name: str | None = Query(default=None, alias="set"),
    current_user: str = Depends(get_current_user()),
):
    library = fleets.library_from_payload(documents.load(current_user, "decks"), active=set_name)
    if set_name is not None and library.active != set_name:
        raise HTTPException(status_code=404, detail=f"Unknown fleet set {set_name!r}")
    units_by_id = roster.index_units(roster.units_from_payload(documents.load(current_user, "ships")))
    reference = catalog.load_catalog(documents.load(current_user, "master"))
    stored_bonus = documents.load(current_user, "bonus")
    groups = bonus.import_groups(stored_bonus) if isinstance(stored_bonus, list) else ()
    groups = tuple(group for group in groups if not group.is_empty)

    workbook = Workbook()
    _append_fleet_sheet(
        workbook, library.active, library.saved, units_by_id, reference, bonus.bonus_map(groups)
    )
    _append_bonus_sheet(workbook, groups, reference)

    buffer = BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    headers = {"Content-Disposition": f"attachment; filename=fleets_{current_user}.xlsx"}
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )
