from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from .. import config
from ..models import SlotRef

logger = logging.getLogger(__name__)

ROSTER_PREFIX = "ship-"
CATALOG_PREFIX = "master-"
SLOT_PREFIX = "slot-"
BONUS_PREFIX = "bonus-group-"

ROSTER = "roster"
CATALOG = "catalog"


@dataclass(frozen=True, slots=True)
class DragPayload:
    kind: str  # ROSTER carries an instance id, CATALOG a reference id
    value: int


@dataclass(frozen=True, slots=True)
class DropEvent:
    payload: DragPayload
    target: str


def roster_draggable_id(instance_id: int) -> str:
    return f"{ROSTER_PREFIX}{instance_id}"


def catalog_draggable_id(reference_id: int) -> str:
    return f"{CATALOG_PREFIX}{reference_id}"


def slot_target_id(ref: SlotRef) -> str:
    return f"{SLOT_PREFIX}{ref.deck_index}-{ref.section}-{ref.slot_index}"


def bonus_target_id(group_id: str) -> str:
    return f"{BONUS_PREFIX}{group_id}"


def _parse_int(text: str) -> int | None:
    try:
        return int(text)
    except (TypeError, ValueError):
        return None


def parse_draggable(raw: Any) -> DragPayload | None:
    text = str(raw or "")
    for prefix, kind in ((CATALOG_PREFIX, CATALOG), (ROSTER_PREFIX, ROSTER)):
        if text.startswith(prefix):
            value = _parse_int(text[len(prefix):])
            if value is None:
                break
            return DragPayload(kind=kind, value=value)
    logger.debug("Unrecognised drag payload %r", raw)
    return None


def parse_slot_target(raw: Any) -> SlotRef | None:
    """``slot-<deck>-<section>-<slot>``; the older ``slot-<deck>-<slot>`` means section 0."""

    text = str(raw or "")
    if not text.startswith(SLOT_PREFIX):
        return None
    parts = [_parse_int(part) for part in text[len(SLOT_PREFIX):].split("-")]
    if any(part is None for part in parts):
        logger.debug("Malformed slot target %r", raw)
        return None
    if len(parts) == 2:
        return SlotRef(deck_index=parts[0], section=0, slot_index=parts[1])
    if len(parts) == 3:
        return SlotRef(deck_index=parts[0], section=parts[1], slot_index=parts[2])
    logger.debug("Malformed slot target %r", raw)
    return None


def parse_bonus_target(raw: Any) -> str | None:
    text = str(raw or "")
    if not text.startswith(BONUS_PREFIX):
        return None
    return text[len(BONUS_PREFIX):] or None


class DragTracker:
    """Pointer gesture state for one drag at a time.

    A press only becomes a drag once the pointer has travelled the activation
    distance, so plain clicks never move anything.
    """

    def __init__(self, activation_distance: float | None = None) -> None:
        if activation_distance is None:
            activation_distance = config.DRAG_ACTIVATION_DISTANCE
        self.activation_distance = activation_distance
        self._payload: DragPayload | None = None
        self._origin: tuple[float, float] | None = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def payload(self) -> DragPayload | None:
        return self._payload if self._active else None

    def pointer_down(self, draggable_id: str, x: float, y: float, disabled: bool = False) -> None:
        self.cancel()
        if disabled:
            return
        payload = parse_draggable(draggable_id)
        if payload is None:
            return
        self._payload = payload
        self._origin = (x, y)

    def pointer_move(self, x: float, y: float) -> bool:
        if self._payload is None or self._origin is None:
            return False
        if not self._active:
            distance = math.hypot(x - self._origin[0], y - self._origin[1])
            if distance >= self.activation_distance:
                self._active = True
        return self._active

    def pointer_up(self, target_id: str | None) -> DropEvent | None:
        payload = self._payload if self._active else None
        self.cancel()
        if payload is None or not target_id:
            return None
        return DropEvent(payload=payload, target=target_id)

    def cancel(self) -> None:
        self._payload = None
        self._origin = None
        self._active = False
