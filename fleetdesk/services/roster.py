from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from .. import config
from ..models import CategoryBucket, Formation, UnitInstance
from . import categories
from .catalog import ENVELOPE_KEY, Catalog, strip_marker

logger = logging.getLogger(__name__)

ROSTER_KEY = "api_ship"


class RosterImportError(Exception):
    """Raised when pasted roster data cannot be understood."""


class SortMode(str, enum.Enum):
    LEVEL = "level"
    CATEGORY = "category"
    REFERENCE = "reference"


@dataclass(frozen=True)
class RosterImport:
    units: tuple[UnitInstance, ...]
    synthesized_ids: bool


@dataclass(frozen=True, slots=True)
class RosterRow:
    unit: UnitInstance
    name: str
    category: str
    bonus_text: str
    is_used: bool


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _decode(text: str) -> Any:
    body = strip_marker(text or "")
    if not body:
        raise RosterImportError("Nothing to import")
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass
    # Recover from noise around the payload: decode the first JSON value found.
    starts = [pos for pos in (body.find("["), body.find("{")) if pos >= 0]
    decoder = json.JSONDecoder()
    for start in sorted(starts):
        try:
            value, _ = decoder.raw_decode(body, start)
        except json.JSONDecodeError:
            continue
        logger.info("Recovered roster payload starting at offset %s", start)
        return value
    raise RosterImportError("The pasted text is not valid roster JSON")


def parse_roster_text(text: str) -> list[Any]:
    data = _decode(text)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        envelope = data.get(ENVELOPE_KEY)
        if isinstance(envelope, dict) and isinstance(envelope.get(ROSTER_KEY), list):
            return envelope[ROSTER_KEY]
        if isinstance(data.get(ROSTER_KEY), list):
            return data[ROSTER_KEY]
    raise RosterImportError("No unit list found in the pasted data")


def normalize_units(raw_units: Sequence[Any]) -> RosterImport:
    """Turn payload rows into units; rows without ``api_id`` get a positional id.

    A positional id never reuses an ``api_id`` carried by another row.
    """

    rows = [item for item in raw_units if isinstance(item, dict)]
    taken = {_as_int(item.get("api_id")) for item in rows}
    units: list[UnitInstance] = []
    seen: set[int] = set()
    synthesized = False
    for position, item in enumerate(raw_units):
        if not isinstance(item, dict):
            continue
        instance_id = _as_int(item.get("api_id"))
        if not instance_id:
            instance_id = config.SYNTHETIC_ID_BASE + position
            while instance_id in taken:
                instance_id += 1
            taken.add(instance_id)
            synthesized = True
        if instance_id in seen:
            logger.warning("Skipping repeated unit instance %s", instance_id)
            continue
        seen.add(instance_id)
        raw = dict(item)
        raw["api_id"] = instance_id
        units.append(
            UnitInstance(
                instance_id=instance_id,
                reference_id=_as_int(item.get("api_ship_id")) or 0,
                level=_as_int(item.get("api_lv")) or 0,
                raw=raw,
            )
        )
    return RosterImport(units=tuple(units), synthesized_ids=synthesized)


def import_roster(text: str) -> RosterImport:
    return normalize_units(parse_roster_text(text))


def units_from_payload(payload: Any) -> tuple[UnitInstance, ...]:
    if not isinstance(payload, list):
        return ()
    return normalize_units(payload).units


def units_to_payload(units: Iterable[UnitInstance]) -> list[dict[str, Any]]:
    return [dict(unit.raw) for unit in units]


def index_units(units: Iterable[UnitInstance]) -> dict[int, UnitInstance]:
    return {unit.instance_id: unit for unit in units}


def total_level(fleet: Formation, units_by_id: Mapping[int, UnitInstance]) -> int:
    total = 0
    for section in fleet.sections():
        for slot in section:
            unit = units_by_id.get(slot) if slot is not None else None
            if unit:
                total += unit.level
    return total


def sort_units(units: Iterable[UnitInstance], mode: SortMode, catalog: Catalog) -> list[UnitInstance]:
    if mode is SortMode.CATEGORY:
        return sorted(
            units,
            key=lambda unit: (catalog.category_of(unit.reference_id) or 0, -unit.level),
        )
    if mode is SortMode.REFERENCE:
        return sorted(units, key=lambda unit: unit.reference_id)
    return sorted(units, key=lambda unit: (-unit.level, unit.reference_id))


def filter_units(
    units: Iterable[UnitInstance],
    catalog: Catalog,
    buckets: Sequence[CategoryBucket],
    selected: str | None,
) -> list[UnitInstance]:
    return [
        unit
        for unit in units
        if categories.matches(buckets, selected, catalog.category_of(unit.reference_id))
    ]


def owned_category_ids(units: Iterable[UnitInstance], catalog: Catalog) -> list[int]:
    return catalog.category_ids(unit.reference_id for unit in units)


def roster_rows(
    units: Iterable[UnitInstance],
    catalog: Catalog,
    buckets: Sequence[CategoryBucket],
    selected: str | None,
    mode: SortMode,
    used_ids: set[int],
    bonus_texts: Mapping[int, str],
) -> list[RosterRow]:
    """Filtered, sorted roster entries ready for the list and formation views."""

    visible = filter_units(units, catalog, buckets, selected)
    return [
        RosterRow(
            unit=unit,
            name=catalog.name_for(unit.reference_id),
            category=catalog.category_name(catalog.category_of(unit.reference_id)),
            bonus_text=bonus_texts.get(unit.reference_id, ""),
            is_used=unit.instance_id in used_ids,
        )
        for unit in sort_units(visible, mode, catalog)
    ]
