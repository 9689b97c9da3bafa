from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .. import config
from ..models import ReferenceEntry

logger = logging.getLogger(__name__)

PAYLOAD_MARKER = "svdata="
ENVELOPE_KEY = "api_data"
UNIT_TABLE = "api_mst_ship"
CATEGORY_TABLE = "api_mst_stype"


class CatalogError(Exception):
    """Raised when a reference payload lacks the unit or category table."""


def strip_marker(text: str) -> str:
    text = text.strip()
    if text.startswith(PAYLOAD_MARKER):
        return text[len(PAYLOAD_MARKER):]
    return text


def _decode_layers(raw: Any) -> Any:
    # A string may itself contain JSON-encoded JSON; unwrap until it is not a string.
    for _ in range(3):
        if not isinstance(raw, str):
            return raw
        try:
            raw = json.loads(strip_marker(raw))
        except json.JSONDecodeError:
            return None
    return raw if not isinstance(raw, str) else None


def normalize_master_payload(payload: Any) -> dict[str, list]:
    """Return ``{api_mst_ship, api_mst_stype}`` extracted from an uploaded payload."""

    raw = payload["data"] if isinstance(payload, dict) and "data" in payload else payload
    root = _decode_layers(raw)
    if isinstance(root, dict) and isinstance(root.get(ENVELOPE_KEY), dict):
        root = root[ENVELOPE_KEY]
    if not isinstance(root, dict):
        raise CatalogError("No usable master data found")
    units = root.get(UNIT_TABLE)
    categories = root.get(CATEGORY_TABLE)
    if not units or not categories or not isinstance(units, list) or not isinstance(categories, list):
        raise CatalogError(f"Master data must contain {UNIT_TABLE} and {CATEGORY_TABLE}")
    return {UNIT_TABLE: units, CATEGORY_TABLE: categories}


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Catalog:
    entries: dict[int, ReferenceEntry] = field(default_factory=dict)
    categories: dict[int, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def get(self, reference_id: int) -> ReferenceEntry | None:
        return self.entries.get(reference_id)

    def name_for(self, reference_id: int) -> str:
        entry = self.entries.get(reference_id)
        return entry.name if entry else f"ID:{reference_id}"

    def category_of(self, reference_id: int) -> int | None:
        entry = self.entries.get(reference_id)
        return entry.category_id if entry else None

    def category_name(self, category_id: int | None) -> str:
        if category_id is None:
            return "?"
        return self.categories.get(category_id, f"ID:{category_id}")

    def taggable_entries(self) -> list[ReferenceEntry]:
        """Entries shown in the tagging view: friendly units, in catalog order."""

        limit = config.CATALOG_MAX_REFERENCE_ID
        entries = [entry for entry in self.entries.values() if entry.reference_id <= limit]
        return sorted(entries, key=_catalog_sort_key)

    def category_ids(self, reference_ids: Iterable[int]) -> list[int]:
        found = {self.category_of(ref) for ref in reference_ids}
        return sorted(cid for cid in found if cid)


def _catalog_sort_key(entry: ReferenceEntry) -> tuple[int, int]:
    if entry.sort_order:
        return (entry.sort_order, entry.reference_id)
    return (entry.reference_id, entry.reference_id)


def build_catalog(tables: dict[str, Any]) -> Catalog:
    entries: dict[int, ReferenceEntry] = {}
    for row in tables.get(UNIT_TABLE) or []:
        if not isinstance(row, dict):
            continue
        reference_id = _as_int(row.get("api_id"))
        if reference_id is None:
            continue
        sort_order = _as_int(row.get("api_sortno"))
        if sort_order is None:
            sort_order = _as_int(row.get("api_sort_id"))
        entries[reference_id] = ReferenceEntry(
            reference_id=reference_id,
            name=str(row.get("api_name") or ""),
            category_id=_as_int(row.get("api_stype")) or 0,
            sort_order=sort_order,
        )
    categories: dict[int, str] = {}
    for row in tables.get(CATEGORY_TABLE) or []:
        if not isinstance(row, dict):
            continue
        category_id = _as_int(row.get("api_id"))
        if category_id is None:
            continue
        categories[category_id] = str(row.get("api_name") or "")
    return Catalog(entries=entries, categories=categories)


def load_catalog(payload: Any) -> Catalog:
    """Build a catalog, falling back to an empty one on malformed input."""

    if not payload:
        return Catalog()
    try:
        tables = normalize_master_payload(payload)
    except CatalogError as exc:
        logger.warning("Ignoring unusable master data: %s", exc)
        return Catalog()
    return build_catalog(tables)
