from __future__ import annotations

import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from fleetdesk.models import CombinedFleet, Deck, Section, SlotRef, StandardFleet  # noqa: E402
from fleetdesk.services import fleets  # noqa: E402


def _accept(message: str) -> bool:
    return True


def _decline(message: str) -> bool:
    return False


class Recorder:
    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.messages: list[str] = []

    def __call__(self, message: str) -> bool:
        self.messages.append(message)
        return self.answer


def _library(*decks: Deck) -> fleets.FleetLibrary:
    return fleets.FleetLibrary(sets={"main": tuple(decks)}, active="main", working=tuple(decks))


def _standard(*slots) -> StandardFleet:
    return StandardFleet.from_flat(list(slots))


def test_insert_into_empty_slot() -> None:
    library = _library(Deck("A"))

    result = fleets.assign(library, 7, SlotRef(0, Section.MAIN, 2), _decline)

    assert result.action == "insert"
    assert result.decks[0].fleet.ships == (None, None, 7, None, None, None)


def test_insert_overwrites_occupant_without_confirmation() -> None:
    library = _library(Deck("A", _standard(1, 2)))
    confirm = Recorder(False)

    result = fleets.assign(library, 9, SlotRef(0, 0, 1), confirm)

    assert result.action == "insert"
    assert result.decks[0].fleet.ships[:2] == (1, 9)
    assert confirm.messages == []


def test_move_within_deck_clears_source() -> None:
    library = _library(Deck("A", _standard(1, 2, 3)))

    result = fleets.assign(library, 1, SlotRef(0, 0, 5), _decline)

    assert result.action == "move"
    assert result.decks[0].fleet.ships == (None, 2, 3, None, None, 1)


def test_move_onto_occupied_slot_swaps_units() -> None:
    library = _library(Deck("A", _standard(1, 2, 3)))

    result = fleets.assign(library, 1, SlotRef(0, 0, 2), _decline)

    assert result.decks[0].fleet.ships[:3] == (3, 2, 1)
    assert fleets.occupied_count(result.decks) == fleets.occupied_count(library.working)


def test_move_onto_same_slot_is_a_noop() -> None:
    library = _library(Deck("A", _standard(1, 2)))

    result = fleets.assign(library, 2, SlotRef(0, 0, 1), _decline)

    assert result.action == "move"
    assert result.decks == library.working


def test_move_between_combined_sections() -> None:
    fleet = CombinedFleet.from_flat([4, None, None, None, None, None, None, 5])
    library = _library(Deck("A", fleet))

    result = fleets.assign(library, 4, SlotRef(0, Section.ESCORT, 0), _decline)

    moved = result.decks[0].fleet
    assert moved.main[0] is None
    assert moved.escort[:2] == (4, 5)


def test_cross_deck_duplicate_prompts_and_keeps_source() -> None:
    deck_a = Deck("A", CombinedFleet.from_flat([None, None, 42]))
    deck_b = Deck("B", CombinedFleet())
    library = _library(deck_a, deck_b)
    confirm = Recorder(True)

    result = fleets.assign(library, 42, SlotRef(1, Section.MAIN, 0), confirm, unit_label="Kongou")

    assert result.action == "duplicate"
    assert len(confirm.messages) == 1
    assert "Kongou" in confirm.messages[0]
    assert "A" in confirm.messages[0]
    assert result.decks[0].fleet.main[2] == 42
    assert result.decks[1].fleet.main[0] == 42


def test_declined_cross_deck_duplicate_leaves_library_untouched() -> None:
    library = _library(Deck("A", _standard(42)), Deck("B", _standard(None, 8)))

    result = fleets.assign(library, 42, SlotRef(1, 0, 0), _decline)

    assert result.action == "declined"
    assert result.library is library
    assert fleets.library_to_payload(result.library) == fleets.library_to_payload(library)


def test_unit_saved_in_another_set_counts_as_cross_deck() -> None:
    other = (Deck("Elsewhere", _standard(11)),)
    library = fleets.FleetLibrary(
        sets={"main": (Deck("A"),), "event": other},
        active="main",
        working=(Deck("A"),),
    )
    confirm = Recorder(True)

    result = fleets.assign(library, 11, SlotRef(0, 0, 0), confirm)

    assert result.action == "duplicate"
    assert "event / Elsewhere" in confirm.messages[0]


def test_drop_into_deck_that_already_holds_the_duplicate_moves_it() -> None:
    library = _library(Deck("A", _standard(5)), Deck("B", _standard(None, 5)))

    result = fleets.assign(library, 5, SlotRef(1, 0, 3), _decline)

    assert result.action == "move"
    assert result.decks[1].fleet.ships == (None, None, None, 5, None, None)
    assert result.decks[0].fleet.ships[0] == 5


def test_invalid_coordinates_are_rejected() -> None:
    library = _library(Deck("A"))

    for target in (SlotRef(0, Section.ESCORT, 0), SlotRef(0, 0, 6), SlotRef(3, 0, 0), SlotRef(0, 0, -1)):
        result = fleets.assign(library, 1, target, _accept)
        assert result.action == "rejected"
        assert result.library is library


def test_same_deck_moves_never_duplicate_within_formation() -> None:
    library = _library(Deck("A", _standard(1, 2, 3, 4)), Deck("B", _standard(5)))
    moves = [(1, 5), (2, 0), (4, 3), (3, 3), (1, 1), (2, 4), (4, 0)]

    for instance_id, slot in moves:
        before = fleets.occupied_count(library.working)
        library = fleets.assign(library, instance_id, SlotRef(0, 0, slot), _decline).library
        assert fleets.occupied_count(library.working) == before
        filled = [value for value in library.working[0].fleet.ships if value is not None]
        assert len(filled) == len(set(filled))


def test_remove_clears_only_the_target_slot() -> None:
    library = _library(Deck("A", _standard(1, 2)), Deck("B", _standard(1)))

    updated = fleets.remove(library, SlotRef(0, 0, 0))

    assert updated.working[0].fleet.ships[:2] == (None, 2)
    assert updated.working[1].fleet.ships[0] == 1


def test_find_and_used_ids_cover_every_set() -> None:
    library = fleets.FleetLibrary(
        sets={"main": (Deck("A", _standard(1)),), "event": (Deck("X", _standard(2)),)},
        active="main",
        working=(Deck("A", _standard(1, 3)),),
    )

    assert fleets.used_instance_ids(library) == {1, 2, 3}
    location = fleets.find_unit_slot(library, 2)
    assert (location.set_name, location.deck_name, location.slot_index) == ("event", "X", 0)
    assert fleets.find_unit_slot(library, 99) is None
