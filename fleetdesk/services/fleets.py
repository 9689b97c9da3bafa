from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, Mapping, Sequence

from .. import config
from ..models import (
    FLEET_TYPES,
    CombinedFleet,
    Deck,
    ExtendedFleet,
    Formation,
    Shape,
    Slot,
    SlotRef,
    StandardFleet,
)

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]
Decks = tuple[Deck, ...]

DECK_NAME_TEMPLATE = "Fleet {number}"


class FleetError(Exception):
    """Raised when a deck or fleet set operation is not allowed."""


def new_deck_name(decks: Sequence[Deck]) -> str:
    taken = {deck.name for deck in decks}
    number = len(decks) + 1
    while DECK_NAME_TEMPLATE.format(number=number) in taken:
        number += 1
    return DECK_NAME_TEMPLATE.format(number=number)


def default_decks() -> Decks:
    return (Deck(name=DECK_NAME_TEMPLATE.format(number=1)),)


@dataclass(frozen=True)
class FleetLibrary:
    """Every fleet set of a user plus the in-memory edits of the active one.

    ``sets`` holds the last-saved snapshot of each set, ``working`` the decks
    being edited for ``active``.
    """

    sets: dict[str, Decks] = field(default_factory=lambda: {config.DEFAULT_SET_NAME: default_decks()})
    active: str = config.DEFAULT_SET_NAME
    working: Decks = field(default_factory=default_decks)

    @property
    def saved(self) -> Decks:
        return self.sets.get(self.active, ())

    def deck(self, index: int) -> Deck | None:
        if 0 <= index < len(self.working):
            return self.working[index]
        return None


@dataclass(frozen=True, slots=True)
class SlotLocation:
    set_name: str
    deck_index: int
    deck_name: str
    section: int
    slot_index: int


@dataclass(frozen=True, slots=True)
class AssignResult:
    library: FleetLibrary
    action: str  # move | duplicate | insert | rejected | declined

    @property
    def decks(self) -> Decks:
        return self.library.working


# -- formation shape -------------------------------------------------------


def flatten(fleet: Formation) -> tuple[Slot, ...]:
    """All slots in order; a combined fleet yields main then escort."""

    slots: tuple[Slot, ...] = ()
    for section in fleet.sections():
        slots += section
    return slots


def reshape(fleet: Formation, shape: Shape) -> Formation:
    if fleet.SHAPE == shape:
        return fleet
    return FLEET_TYPES[shape].from_flat(flatten(fleet))


def dropped_by_reshape(fleet: Formation, shape: Shape) -> list[int]:
    """Instance ids that would not fit into ``shape``."""

    overflow = flatten(fleet)[FLEET_TYPES[shape].SIZE:]
    return [slot for slot in overflow if slot is not None]


def occupied_count(decks: Sequence[Deck]) -> int:
    return sum(1 for deck in decks for slot in flatten(deck.fleet) if slot is not None)


def _valid_target(decks: Sequence[Deck], ref: SlotRef) -> bool:
    if not 0 <= ref.deck_index < len(decks):
        return False
    slots = decks[ref.deck_index].fleet.section_slots(ref.section)
    if slots is None:
        return False
    return 0 <= ref.slot_index < len(slots)


def _replace_deck(decks: Decks, index: int, deck: Deck) -> Decks:
    return decks[:index] + (deck,) + decks[index + 1:]


def _with_fleet(library: FleetLibrary, index: int, fleet: Formation) -> FleetLibrary:
    deck = library.working[index]
    working = _replace_deck(library.working, index, Deck(name=deck.name, fleet=fleet))
    return replace(library, working=working)


# -- lookups ---------------------------------------------------------------


def _iter_slots(decks: Sequence[Deck]) -> Iterator[tuple[int, int, int, Slot]]:
    for deck_index, deck in enumerate(decks):
        for section, slots in enumerate(deck.fleet.sections()):
            for slot_index, value in enumerate(slots):
                yield deck_index, section, slot_index, value


def _search_space(library: FleetLibrary) -> Iterator[tuple[str, Decks]]:
    yield library.active, library.working
    for name, decks in library.sets.items():
        if name != library.active:
            yield name, decks


def find_unit_slot(
    library: FleetLibrary, instance_id: int, prefer_deck: int | None = None
) -> SlotLocation | None:
    """First slot holding ``instance_id``.

    The active set's ``prefer_deck`` is scanned first, then the working decks
    of the active set, then the saved snapshots of the other sets.
    """

    if prefer_deck is not None and library.deck(prefer_deck) is not None:
        deck = library.working[prefer_deck]
        for section, slots in enumerate(deck.fleet.sections()):
            for slot_index, value in enumerate(slots):
                if value == instance_id:
                    return SlotLocation(library.active, prefer_deck, deck.name, section, slot_index)
    for set_name, decks in _search_space(library):
        for deck_index, section, slot_index, value in _iter_slots(decks):
            if value == instance_id:
                return SlotLocation(set_name, deck_index, decks[deck_index].name, section, slot_index)
    return None


def used_instance_ids(library: FleetLibrary) -> set[int]:
    used: set[int] = set()
    for _, decks in _search_space(library):
        for _, _, _, value in _iter_slots(decks):
            if value is not None:
                used.add(value)
    return used


# -- slot assignment -------------------------------------------------------


def assign(
    library: FleetLibrary,
    instance_id: int,
    target: SlotRef,
    confirm: ConfirmFn,
    unit_label: str | None = None,
) -> AssignResult:
    """Place a roster unit into a formation slot of the active set."""

    if not _valid_target(library.working, target):
        logger.warning("Ignoring drop on invalid slot %s for unit %s", target, instance_id)
        return AssignResult(library, "rejected")

    label = unit_label or f"#{instance_id}"
    source = find_unit_slot(library, instance_id, prefer_deck=target.deck_index)
    fleet = library.working[target.deck_index].fleet

    if source and source.set_name == library.active and source.deck_index == target.deck_index:
        # Whatever sat in the destination takes the vacated slot.
        displaced = fleet.section_slots(target.section)[target.slot_index]
        fleet = fleet.with_slot(source.section, source.slot_index, displaced)
        fleet = fleet.with_slot(target.section, target.slot_index, instance_id)
        return AssignResult(_with_fleet(library, target.deck_index, fleet), "move")

    if source:
        where = source.deck_name
        if source.set_name != library.active:
            where = f"{source.set_name} / {source.deck_name}"
        if not confirm(f"{label} is already assigned to {where}. Assign it here as well?"):
            return AssignResult(library, "declined")
        fleet = fleet.with_slot(target.section, target.slot_index, instance_id)
        return AssignResult(_with_fleet(library, target.deck_index, fleet), "duplicate")

    fleet = fleet.with_slot(target.section, target.slot_index, instance_id)
    return AssignResult(_with_fleet(library, target.deck_index, fleet), "insert")


def remove(library: FleetLibrary, target: SlotRef) -> FleetLibrary:
    if not _valid_target(library.working, target):
        logger.warning("Ignoring removal from invalid slot %s", target)
        return library
    fleet = library.working[target.deck_index].fleet
    return _with_fleet(library, target.deck_index, fleet.with_slot(target.section, target.slot_index, None))


def change_shape(
    library: FleetLibrary, deck_index: int, shape: Shape, confirm: ConfirmFn
) -> FleetLibrary:
    deck = library.deck(deck_index)
    if deck is None:
        raise FleetError(f"No deck at position {deck_index}")
    if deck.fleet.SHAPE == shape:
        return library
    dropped = dropped_by_reshape(deck.fleet, shape)
    if dropped and not confirm(
        f"Changing {deck.name} to {shape.value} removes {len(dropped)} assigned unit(s). Continue?"
    ):
        return library
    return _with_fleet(library, deck_index, reshape(deck.fleet, shape))


def add_slot(library: FleetLibrary, deck_index: int) -> FleetLibrary:
    deck = library.deck(deck_index)
    if deck is None or not isinstance(deck.fleet, StandardFleet):
        return library
    return _with_fleet(library, deck_index, reshape(deck.fleet, Shape.EXTENDED))


def remove_slot(library: FleetLibrary, deck_index: int, confirm: ConfirmFn) -> FleetLibrary:
    deck = library.deck(deck_index)
    if deck is None or not isinstance(deck.fleet, ExtendedFleet):
        return library
    return change_shape(library, deck_index, Shape.STANDARD, confirm)


# -- decks -----------------------------------------------------------------


def add_deck(library: FleetLibrary, name: str | None = None) -> FleetLibrary:
    deck_name = (name or "").strip() or new_deck_name(library.working)
    if any(deck.name == deck_name for deck in library.working):
        raise FleetError(f"A deck named {deck_name!r} already exists")
    return replace(library, working=library.working + (Deck(name=deck_name),))


def remove_deck(library: FleetLibrary, deck_index: int, confirm: ConfirmFn) -> FleetLibrary:
    if len(library.working) <= 1:
        raise FleetError("The last deck of a set cannot be removed")
    deck = library.deck(deck_index)
    if deck is None:
        raise FleetError(f"No deck at position {deck_index}")
    if not confirm(f"Remove {deck.name}?"):
        return library
    working = library.working[:deck_index] + library.working[deck_index + 1:]
    return replace(library, working=working)


def rename_deck(library: FleetLibrary, deck_index: int, name: str) -> FleetLibrary:
    deck = library.deck(deck_index)
    if deck is None:
        raise FleetError(f"No deck at position {deck_index}")
    cleaned = (name or "").strip()
    if not cleaned or cleaned == deck.name:
        return library
    if any(other.name == cleaned for i, other in enumerate(library.working) if i != deck_index):
        raise FleetError(f"A deck named {cleaned!r} already exists")
    return replace(library, working=_replace_deck(library.working, deck_index, Deck(cleaned, deck.fleet)))


# -- fleet sets ------------------------------------------------------------


def has_unsaved_changes(library: FleetLibrary) -> bool:
    return library.working != library.saved


def save_active(library: FleetLibrary) -> FleetLibrary:
    sets = dict(library.sets)
    sets[library.active] = library.working
    return replace(library, sets=sets)


def save_as(library: FleetLibrary, name: str, confirm: ConfirmFn) -> FleetLibrary:
    cleaned = (name or "").strip()
    if not cleaned:
        raise FleetError("A fleet set name is required")
    if cleaned in library.sets and not confirm(f"Overwrite fleet set {cleaned!r}?"):
        return library
    sets = dict(library.sets)
    sets[cleaned] = library.working
    return FleetLibrary(sets=sets, active=cleaned, working=library.working)


def delete_active(library: FleetLibrary, confirm: ConfirmFn) -> FleetLibrary:
    if len(library.sets) <= 1:
        raise FleetError("The last fleet set cannot be deleted")
    if not confirm(f"Delete fleet set {library.active!r}?"):
        return library
    sets = {name: decks for name, decks in library.sets.items() if name != library.active}
    active = next(iter(sets))
    return FleetLibrary(sets=sets, active=active, working=sets[active])


def switch_active(library: FleetLibrary, name: str, confirm: ConfirmFn) -> FleetLibrary:
    if name not in library.sets:
        raise FleetError(f"Unknown fleet set {name!r}")
    if name == library.active:
        return library
    if has_unsaved_changes(library) and not confirm(
        f"{library.active!r} has unsaved changes. Discard them and open {name!r}?"
    ):
        return library
    return FleetLibrary(sets=dict(library.sets), active=name, working=library.sets[name])


# -- wire format -----------------------------------------------------------


def _slot_value(raw: Any) -> Slot:
    if isinstance(raw, dict):
        raw = raw.get("api_id")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value or None


def _slot_list(raw: Any) -> list[Slot]:
    if not isinstance(raw, list):
        return []
    return [_slot_value(item) for item in raw]


def _unique_slots(slots: Sequence[Slot]) -> list[Slot]:
    seen: set[int] = set()
    cleaned: list[Slot] = []
    for value in slots:
        if value is not None and value in seen:
            logger.warning("Dropping repeated unit %s inside one formation", value)
            value = None
        if value is not None:
            seen.add(value)
        cleaned.append(value)
    return cleaned


def _parse_shape(raw: Any) -> Shape | None:
    try:
        return Shape(str(raw).lower())
    except ValueError:
        return None


def fleet_from_payload(item: Mapping[str, Any]) -> Formation:
    shape = _parse_shape(item.get("type"))
    if shape is Shape.COMBINED:
        main = _slot_list(item.get("main"))[: CombinedFleet.SECTION_SIZE]
        escort = _slot_list(item.get("escort"))[: CombinedFleet.SECTION_SIZE]
        main += [None] * (CombinedFleet.SECTION_SIZE - len(main))
        return CombinedFleet.from_flat(_unique_slots(main + escort))
    slots = _slot_list(item.get("ships"))
    if shape is None:
        # Untagged decks are standard; a seventh entry means the extra slot was in use.
        shape = Shape.EXTENDED if len(slots) > StandardFleet.SIZE else Shape.STANDARD
    return FLEET_TYPES[shape].from_flat(_unique_slots(slots))


def deck_from_payload(item: Any, fallback_name: str) -> Deck:
    if not isinstance(item, dict):
        return Deck(name=fallback_name)
    name = str(item.get("name") or "").strip() or fallback_name
    return Deck(name=name, fleet=fleet_from_payload(item))


def fleet_to_payload(fleet: Formation) -> dict[str, Any]:
    if isinstance(fleet, CombinedFleet):
        return {"type": fleet.SHAPE.value, "main": list(fleet.main), "escort": list(fleet.escort)}
    return {"type": fleet.SHAPE.value, "ships": list(fleet.ships)}


def deck_to_payload(deck: Deck) -> dict[str, Any]:
    return {"name": deck.name, **fleet_to_payload(deck.fleet)}


def _decks_from_list(items: Sequence[Any]) -> Decks:
    decks: list[Deck] = []
    for item in items:
        deck = deck_from_payload(item, new_deck_name(decks))
        if any(existing.name == deck.name for existing in decks):
            deck = Deck(name=new_deck_name(decks), fleet=deck.fleet)
        decks.append(deck)
    return tuple(decks) or default_decks()


def _migrate_legacy(items: Sequence[Any]) -> Decks:
    """Convert a pre-set deck list, folding ``isCombined`` pairs into one deck."""

    merged: list[Any] = []
    index = 0
    while index < len(items):
        item = items[index]
        if isinstance(item, dict) and item.get("isCombined") and "type" not in item:
            escort = items[index + 1] if index + 1 < len(items) else {}
            escort_ships = escort.get("ships") if isinstance(escort, dict) else None
            merged.append(
                {
                    "name": item.get("name"),
                    "type": Shape.COMBINED.value,
                    "main": item.get("ships") or [],
                    "escort": escort_ships or [],
                }
            )
            index += 2
            continue
        merged.append(item)
        index += 1
    return _decks_from_list(merged)


def library_from_payload(payload: Any, active: str | None = None) -> FleetLibrary:
    """Build a library from the stored document, migrating the legacy deck list."""

    if isinstance(payload, list):
        if not payload:
            return FleetLibrary()
        logger.info("Migrating legacy deck list into set %r", config.DEFAULT_SET_NAME)
        sets = {config.DEFAULT_SET_NAME: _migrate_legacy(payload)}
    elif isinstance(payload, dict):
        sets = {
            str(name): _decks_from_list(items)
            for name, items in payload.items()
            if isinstance(items, list)
        }
        if not sets:
            return FleetLibrary()
    else:
        return FleetLibrary()
    current = active if active in sets else next(iter(sets))
    return FleetLibrary(sets=sets, active=current, working=sets[current])


def library_to_payload(library: FleetLibrary) -> dict[str, list[dict[str, Any]]]:
    return {name: [deck_to_payload(deck) for deck in decks] for name, decks in library.sets.items()}


def _slot_limits(item: Mapping[str, Any]) -> tuple[tuple[str, int], ...]:
    shape = _parse_shape(item.get("type"))
    if shape is Shape.COMBINED:
        return (("main", CombinedFleet.SECTION_SIZE), ("escort", CombinedFleet.SECTION_SIZE))
    if shape is Shape.STANDARD:
        return (("ships", StandardFleet.SIZE),)
    # Untagged decks may still carry the seventh slot.
    return (("ships", ExtendedFleet.SIZE),)


def check_slot_limits(payload: Any) -> None:
    """Reject a stored deck document whose formations exceed their slot counts."""

    if isinstance(payload, list):
        groups: Iterator[tuple[str, Any]] = iter([(config.DEFAULT_SET_NAME, payload)])
    elif isinstance(payload, dict):
        groups = iter(payload.items())
    else:
        raise FleetError("Deck data must be a fleet set mapping or a deck list")
    for set_name, items in groups:
        if not isinstance(items, list):
            raise FleetError(f"Fleet set {set_name!r} must be a list of decks")
        for item in items:
            if not isinstance(item, dict):
                continue
            for key, limit in _slot_limits(item):
                slots = item.get(key)
                if isinstance(slots, list) and len(slots) > limit:
                    raise FleetError(
                        f"{item.get('name') or 'A deck'} in {set_name!r} has more than {limit} {key} slots"
                    )
