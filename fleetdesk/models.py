from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Optional, Sequence, Union

Slot = Optional[int]


class Shape(str, enum.Enum):
    STANDARD = "standard"
    EXTENDED = "extended"
    COMBINED = "combined"


class Section(enum.IntEnum):
    MAIN = 0
    ESCORT = 1


def _empty(count: int) -> tuple[Slot, ...]:
    return (None,) * count


def _fit(slots: Sequence[Slot], size: int) -> tuple[Slot, ...]:
    fitted = tuple(slots[:size])
    return fitted + _empty(size - len(fitted))


class _FlatFleet:
    """Behaviour shared by the single-section shapes."""

    SHAPE: ClassVar[Shape]
    SIZE: ClassVar[int]
    ships: tuple[Slot, ...]

    def __post_init__(self) -> None:
        if len(self.ships) != self.SIZE:
            raise ValueError(
                f"{self.SHAPE.value} fleet needs {self.SIZE} slots, got {len(self.ships)}"
            )

    def sections(self) -> tuple[tuple[Slot, ...], ...]:
        return (self.ships,)

    def section_slots(self, section: int) -> tuple[Slot, ...] | None:
        if section != Section.MAIN:
            return None
        return self.ships

    def with_slot(self, section: int, index: int, value: Slot):
        ships = list(self.ships)
        ships[index] = value
        return type(self)(ships=tuple(ships))

    @classmethod
    def from_flat(cls, slots: Sequence[Slot]):
        return cls(ships=_fit(slots, cls.SIZE))


@dataclass(frozen=True, slots=True)
class StandardFleet(_FlatFleet):
    SHAPE: ClassVar[Shape] = Shape.STANDARD
    SIZE: ClassVar[int] = 6

    ships: tuple[Slot, ...] = _empty(6)


@dataclass(frozen=True, slots=True)
class ExtendedFleet(_FlatFleet):
    SHAPE: ClassVar[Shape] = Shape.EXTENDED
    SIZE: ClassVar[int] = 7

    ships: tuple[Slot, ...] = _empty(7)


@dataclass(frozen=True, slots=True)
class CombinedFleet:
    """Two-group formation: a main fleet and its escort."""

    SHAPE: ClassVar[Shape] = Shape.COMBINED
    SECTION_SIZE: ClassVar[int] = 6
    SIZE: ClassVar[int] = 12

    main: tuple[Slot, ...] = _empty(6)
    escort: tuple[Slot, ...] = _empty(6)

    def __post_init__(self) -> None:
        for label, slots in (("main", self.main), ("escort", self.escort)):
            if len(slots) != self.SECTION_SIZE:
                raise ValueError(
                    f"combined fleet {label} needs {self.SECTION_SIZE} slots, got {len(slots)}"
                )

    def sections(self) -> tuple[tuple[Slot, ...], ...]:
        return (self.main, self.escort)

    def section_slots(self, section: int) -> tuple[Slot, ...] | None:
        if section == Section.MAIN:
            return self.main
        if section == Section.ESCORT:
            return self.escort
        return None

    def with_slot(self, section: int, index: int, value: Slot) -> CombinedFleet:
        if section == Section.MAIN:
            main = list(self.main)
            main[index] = value
            return CombinedFleet(main=tuple(main), escort=self.escort)
        escort = list(self.escort)
        escort[index] = value
        return CombinedFleet(main=self.main, escort=tuple(escort))

    @classmethod
    def from_flat(cls, slots: Sequence[Slot]) -> CombinedFleet:
        size = cls.SECTION_SIZE
        return cls(main=_fit(slots[:size], size), escort=_fit(slots[size:], size))


Formation = Union[StandardFleet, ExtendedFleet, CombinedFleet]

FLEET_TYPES: dict[Shape, type] = {
    Shape.STANDARD: StandardFleet,
    Shape.EXTENDED: ExtendedFleet,
    Shape.COMBINED: CombinedFleet,
}


@dataclass(frozen=True, slots=True)
class SlotRef:
    deck_index: int
    section: int
    slot_index: int


@dataclass(frozen=True, slots=True)
class Deck:
    name: str
    fleet: Formation = field(default_factory=StandardFleet)


@dataclass(frozen=True)
class UnitInstance:
    """One owned copy of a unit, as imported from the game payload."""

    instance_id: int
    reference_id: int
    level: int = 1
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def _stat(self, key: str) -> int | None:
        value = self.raw.get(key)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def firepower(self) -> int | None:
        return self._stat("api_karyoku")

    @property
    def torpedo(self) -> int | None:
        return self._stat("api_raisou")

    @property
    def anti_air(self) -> int | None:
        return self._stat("api_taiku")

    @property
    def armor(self) -> int | None:
        return self._stat("api_soukou")

    @property
    def hp(self) -> int | None:
        return self._stat("api_maxhp")

    @property
    def luck(self) -> int | None:
        return self._stat("api_lucky")


@dataclass(frozen=True, slots=True)
class ReferenceEntry:
    reference_id: int
    name: str
    category_id: int
    sort_order: int | None = None


@dataclass(frozen=True, slots=True)
class CategoryBucket:
    name: str
    category_ids: frozenset[int] = frozenset()


@dataclass(frozen=True, slots=True)
class BonusGroup:
    id: str
    text: str = ""
    member_ids: tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.member_ids
