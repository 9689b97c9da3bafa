from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from ..models import ReferenceEntry, Shape, SlotRef, UnitInstance
from ..storage import StorageError
from . import bonus, catalog, categories, drag, fleets, roster
from .api_client import PersistenceClient

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]
NotifyFn = Callable[[str], None]


class ViewMode(str, enum.Enum):
    FLEET = "fleet"
    LIST = "list"
    BONUS = "bonus"
    MASTER = "master"
    IMPORT = "import"


@dataclass(frozen=True)
class SessionState:
    """Everything one browser session shows and edits."""

    view_mode: ViewMode = ViewMode.FLEET
    units: tuple[UnitInstance, ...] = ()
    catalog: catalog.Catalog = field(default_factory=catalog.Catalog)
    buckets: categories.Buckets = ()
    selected_bucket: str | None = None
    sort_mode: roster.SortMode = roster.SortMode.LEVEL
    detail_view: bool = False
    library: fleets.FleetLibrary = field(default_factory=fleets.FleetLibrary)
    deck_index: int = 0
    bonus_groups: bonus.Groups = field(default_factory=lambda: (bonus.new_group(),))

    @property
    def units_by_id(self) -> dict[int, UnitInstance]:
        return roster.index_units(self.units)

    @property
    def used_ids(self) -> set[int]:
        return fleets.used_instance_ids(self.library)

    @property
    def bonus_texts(self) -> dict[int, str]:
        return bonus.bonus_map(self.bonus_groups)

    @property
    def current_deck(self):
        return self.library.deck(self.deck_index)


def _clamp_deck(state: SessionState) -> SessionState:
    last = max(len(state.library.working) - 1, 0)
    if 0 <= state.deck_index <= last:
        return state
    return replace(state, deck_index=min(max(state.deck_index, 0), last))


class SessionController:
    """Turns user gestures into new session states.

    Handlers never mutate the state they are given. Declined confirmations and
    failed requests return the incoming state unchanged.
    """

    def __init__(self, client: PersistenceClient, confirm: ConfirmFn, notify: NotifyFn) -> None:
        self.client = client
        self.confirm = confirm
        self.notify = notify

    # -- loading -----------------------------------------------------------

    def _fetch(self, loader: Callable[[], Any], what: str) -> Any:
        try:
            return loader()
        except StorageError as exc:
            self.notify(f"Could not load {what}: {exc}")
            return None

    def load_all(self, state: SessionState) -> SessionState:
        master_payload = self._fetch(self.client.load_master, "master data")
        if master_payload is not None:
            state = replace(state, catalog=catalog.load_catalog(master_payload))

        bucket_payload = self._fetch(self.client.load_category_config, "category settings")
        if bucket_payload is not None:
            buckets = categories.load_buckets(bucket_payload)
            if not buckets and state.catalog:
                buckets = categories.default_buckets(state.catalog)
            state = replace(state, buckets=buckets)

        ship_payload = self._fetch(self.client.load_ships, "roster")
        if ship_payload is not None:
            state = replace(state, units=roster.units_from_payload(ship_payload))

        deck_payload = self._fetch(self.client.load_decks, "fleets")
        if deck_payload is not None:
            library = fleets.library_from_payload(deck_payload, active=state.library.active)
            state = _clamp_deck(replace(state, library=library))

        bonus_payload = self._fetch(self.client.load_bonus, "bonus data")
        if isinstance(bonus_payload, list):
            state = replace(state, bonus_groups=bonus.import_groups(bonus_payload))
        return state

    # -- view switches -----------------------------------------------------

    def set_view(self, state: SessionState, mode: ViewMode) -> SessionState:
        return replace(state, view_mode=ViewMode(mode))

    def select_bucket(self, state: SessionState, name: str | None) -> SessionState:
        if name is not None and name not in categories.bucket_names(state.buckets):
            return state
        return replace(state, selected_bucket=name)

    def set_sort(self, state: SessionState, mode: roster.SortMode) -> SessionState:
        return replace(state, sort_mode=roster.SortMode(mode))

    def toggle_detail(self, state: SessionState) -> SessionState:
        return replace(state, detail_view=not state.detail_view)

    def select_deck(self, state: SessionState, index: int) -> SessionState:
        if state.library.deck(index) is None:
            return state
        return replace(state, deck_index=index)

    def roster_rows(self, state: SessionState) -> list[roster.RosterRow]:
        return roster.roster_rows(
            state.units,
            state.catalog,
            state.buckets,
            state.selected_bucket,
            state.sort_mode,
            state.used_ids,
            state.bonus_texts,
        )

    def catalog_entries(self, state: SessionState) -> list[ReferenceEntry]:
        return [
            entry
            for entry in state.catalog.taggable_entries()
            if categories.matches(state.buckets, state.selected_bucket, entry.category_id)
        ]

    # -- drag and drop -----------------------------------------------------

    def begin_drag(
        self, state: SessionState, tracker: drag.DragTracker, draggable_id: str, x: float, y: float
    ) -> None:
        """Arm ``tracker`` unless the roster unit already sits in a fleet."""

        payload = drag.parse_draggable(draggable_id)
        disabled = payload is not None and payload.kind == drag.ROSTER and payload.value in state.used_ids
        tracker.pointer_down(draggable_id, x, y, disabled=disabled)

    def drop(self, state: SessionState, event: drag.DropEvent | None) -> SessionState:
        if event is None:
            return state
        payload = event.payload
        if payload.kind == drag.CATALOG:
            group_id = drag.parse_bonus_target(event.target)
            if state.view_mode is not ViewMode.BONUS or group_id is None:
                logger.debug("Catalog drop on %r ignored", event.target)
                return state
            return replace(state, bonus_groups=bonus.add_member(state.bonus_groups, group_id, payload.value))

        target = drag.parse_slot_target(event.target)
        if state.view_mode is not ViewMode.FLEET or target is None:
            logger.debug("Roster drop on %r ignored", event.target)
            return state
        unit = state.units_by_id.get(payload.value)
        label = state.catalog.name_for(unit.reference_id) if unit else None
        result = fleets.assign(state.library, payload.value, target, self.confirm, unit_label=label)
        if result.library is state.library:
            return state
        return replace(state, library=result.library)

    # -- formation editing -------------------------------------------------

    def _apply(self, state: SessionState, operation: Callable[[], fleets.FleetLibrary]) -> SessionState:
        try:
            library = operation()
        except fleets.FleetError as exc:
            self.notify(str(exc))
            return state
        if library is state.library:
            return state
        return _clamp_deck(replace(state, library=library))

    def remove_unit(self, state: SessionState, target: SlotRef) -> SessionState:
        return self._apply(state, lambda: fleets.remove(state.library, target))

    def change_shape(self, state: SessionState, shape: Shape) -> SessionState:
        return self._apply(
            state, lambda: fleets.change_shape(state.library, state.deck_index, Shape(shape), self.confirm)
        )

    def add_slot(self, state: SessionState) -> SessionState:
        return self._apply(state, lambda: fleets.add_slot(state.library, state.deck_index))

    def remove_slot(self, state: SessionState) -> SessionState:
        return self._apply(state, lambda: fleets.remove_slot(state.library, state.deck_index, self.confirm))

    def add_deck(self, state: SessionState, name: str | None = None) -> SessionState:
        updated = self._apply(state, lambda: fleets.add_deck(state.library, name))
        if updated is state:
            return state
        return replace(updated, deck_index=len(updated.library.working) - 1)

    def remove_deck(self, state: SessionState) -> SessionState:
        updated = self._apply(
            state, lambda: fleets.remove_deck(state.library, state.deck_index, self.confirm)
        )
        if updated is state:
            return state
        return _clamp_deck(replace(updated, deck_index=max(state.deck_index - 1, 0)))

    def rename_deck(self, state: SessionState, name: str) -> SessionState:
        return self._apply(state, lambda: fleets.rename_deck(state.library, state.deck_index, name))

    # -- fleet sets --------------------------------------------------------

    def _persist_library(self, state: SessionState, library: fleets.FleetLibrary, message: str) -> SessionState:
        try:
            self.client.save_decks(fleets.library_to_payload(library))
        except StorageError as exc:
            self.notify(f"Saving fleets failed: {exc}")
            return state
        self.notify(message)
        return _clamp_deck(replace(state, library=library))

    def save_decks(self, state: SessionState) -> SessionState:
        library = fleets.save_active(state.library)
        return self._persist_library(state, library, "Fleets saved")

    def save_as(self, state: SessionState, name: str) -> SessionState:
        try:
            library = fleets.save_as(state.library, name, self.confirm)
        except fleets.FleetError as exc:
            self.notify(str(exc))
            return state
        if library is state.library:
            return state
        return self._persist_library(state, library, f"Saved as {library.active!r}")

    def delete_set(self, state: SessionState) -> SessionState:
        try:
            library = fleets.delete_active(state.library, self.confirm)
        except fleets.FleetError as exc:
            self.notify(str(exc))
            return state
        if library is state.library:
            return state
        updated = self._persist_library(state, library, "Fleet set deleted")
        if updated is state:
            return state
        return replace(updated, deck_index=0)

    def switch_set(self, state: SessionState, name: str) -> SessionState:
        updated = self._apply(state, lambda: fleets.switch_active(state.library, name, self.confirm))
        if updated is state:
            return state
        return replace(updated, deck_index=0)

    # -- bonus tagging -----------------------------------------------------

    def add_bonus_group(self, state: SessionState) -> SessionState:
        return replace(state, bonus_groups=bonus.add_group(state.bonus_groups))

    def remove_bonus_group(self, state: SessionState, index: int) -> SessionState:
        groups = bonus.remove_group(state.bonus_groups, index, self.confirm)
        if groups is state.bonus_groups:
            return state
        return replace(state, bonus_groups=groups)

    def set_bonus_text(self, state: SessionState, index: int, text: str) -> SessionState:
        return replace(state, bonus_groups=bonus.set_group_text(state.bonus_groups, index, text))

    def remove_bonus_member(self, state: SessionState, group_id: str, reference_id: int) -> SessionState:
        return replace(state, bonus_groups=bonus.remove_member(state.bonus_groups, group_id, reference_id))

    def save_bonus(self, state: SessionState) -> SessionState:
        try:
            self.client.save_bonus(bonus.export_groups(state.bonus_groups))
        except StorageError as exc:
            self.notify(f"Saving bonus data failed: {exc}")
            return state
        self.notify("Bonus data saved")
        return state

    def export_bonus(self, state: SessionState) -> str:
        return json.dumps(bonus.export_groups(state.bonus_groups), ensure_ascii=False, indent=2)

    def import_bonus(self, state: SessionState, text: str) -> SessionState:
        try:
            groups = bonus.import_groups(json.loads(text))
        except (json.JSONDecodeError, bonus.BonusError):
            self.notify("Could not read the bonus file; check that it is valid JSON")
            return state
        self.notify(f"Loaded bonus data for {bonus.tagged_reference_count(groups)} unit(s)")
        return replace(state, bonus_groups=groups)

    # -- roster import -----------------------------------------------------

    def import_roster(self, state: SessionState, text: str) -> SessionState:
        try:
            imported = roster.import_roster(text)
        except roster.RosterImportError as exc:
            self.notify(f"Unsupported roster data: {exc}")
            return state
        library = state.library
        if imported.synthesized_ids:
            if not self.confirm(
                "This data has no unit ids. New ids will be generated and the current fleets reset. Continue?"
            ):
                return state
            library = fleets.FleetLibrary()
        try:
            message = self.client.save_ships(roster.units_to_payload(imported.units))
        except StorageError as exc:
            self.notify(f"Saving roster failed: {exc}")
            return state
        self.notify(message)
        return _clamp_deck(replace(state, units=imported.units, library=library))

    # -- reference data and buckets ----------------------------------------

    def upload_master(self, state: SessionState, text: str) -> SessionState:
        try:
            tables = catalog.normalize_master_payload(text)
        except catalog.CatalogError as exc:
            self.notify(str(exc))
            return state
        try:
            message = self.client.save_master(tables)
        except StorageError as exc:
            self.notify(f"Saving master data failed: {exc}")
            return state
        self.notify(message)
        reference = catalog.build_catalog(tables)
        buckets = state.buckets or categories.default_buckets(reference)
        return replace(state, catalog=reference, buckets=buckets)

    def edit_buckets(
        self, state: SessionState, operation: Callable[[categories.Buckets], categories.Buckets]
    ) -> SessionState:
        try:
            buckets = operation(state.buckets)
        except categories.CategoryError as exc:
            self.notify(str(exc))
            return state
        selected = state.selected_bucket
        if selected is not None and selected not in categories.bucket_names(buckets):
            selected = None
        return replace(state, buckets=buckets, selected_bucket=selected)

    def save_buckets(self, state: SessionState) -> SessionState:
        try:
            self.client.save_category_config(categories.buckets_to_payload(state.buckets))
        except StorageError as exc:
            self.notify(f"Saving category settings failed: {exc}")
            return state
        self.notify("Category settings saved")
        return state
