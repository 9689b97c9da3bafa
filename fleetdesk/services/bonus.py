from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Sequence

from ..models import BonusGroup

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]
Groups = tuple[BonusGroup, ...]


class BonusError(Exception):
    """Raised when bonus data cannot be imported."""


def new_group(text: str = "", member_ids: Sequence[int] = ()) -> BonusGroup:
    return BonusGroup(id=uuid.uuid4().hex, text=text, member_ids=tuple(member_ids))


def _replace(groups: Groups, index: int, group: BonusGroup) -> Groups:
    return groups[:index] + (group,) + groups[index + 1:]


def _index_of(groups: Groups, group_id: str) -> int | None:
    for index, group in enumerate(groups):
        if group.id == group_id:
            return index
    return None


def add_group(groups: Groups) -> Groups:
    return groups + (new_group(),)


def remove_group(groups: Groups, index: int, confirm: ConfirmFn) -> Groups:
    if not 0 <= index < len(groups):
        return groups
    label = groups[index].text or f"group {index + 1}"
    if not confirm(f"Delete bonus {label!r}?"):
        return groups
    return groups[:index] + groups[index + 1:]


def set_group_text(groups: Groups, index: int, text: str) -> Groups:
    if not 0 <= index < len(groups):
        return groups
    group = groups[index]
    return _replace(groups, index, BonusGroup(id=group.id, text=text, member_ids=group.member_ids))


def add_member(groups: Groups, group_id: str, reference_id: int) -> Groups:
    index = _index_of(groups, group_id)
    if index is None:
        logger.debug("Drop on unknown bonus group %s ignored", group_id)
        return groups
    group = groups[index]
    if reference_id in group.member_ids:
        return groups
    updated = BonusGroup(id=group.id, text=group.text, member_ids=group.member_ids + (reference_id,))
    return _replace(groups, index, updated)


def remove_member(groups: Groups, group_id: str, reference_id: int) -> Groups:
    index = _index_of(groups, group_id)
    if index is None:
        return groups
    group = groups[index]
    members = tuple(member for member in group.member_ids if member != reference_id)
    return _replace(groups, index, BonusGroup(id=group.id, text=group.text, member_ids=members))


def bonus_map(groups: Sequence[BonusGroup]) -> dict[int, str]:
    """Reference id -> text of every group tagging it, one per line."""

    texts: dict[int, list[str]] = {}
    for group in groups:
        for reference_id in group.member_ids:
            texts.setdefault(reference_id, []).append(group.text)
    return {reference_id: "\n".join(lines) for reference_id, lines in texts.items()}


def tagged_reference_count(groups: Sequence[BonusGroup]) -> int:
    return len({reference_id for group in groups for reference_id in group.member_ids})


def export_groups(groups: Sequence[BonusGroup]) -> list[dict[str, Any]]:
    return [
        {"ids": list(group.member_ids), "text": group.text}
        for group in groups
        if not group.is_empty
    ]


def _member_ids(raw: Any) -> tuple[int, ...]:
    if not isinstance(raw, list):
        return ()
    members: list[int] = []
    for value in raw:
        if isinstance(value, bool):
            continue
        try:
            reference_id = int(value)
        except (TypeError, ValueError):
            continue
        if reference_id not in members:
            members.append(reference_id)
    return tuple(members)


def import_groups(payload: Any) -> Groups:
    """Load ``[{ids, text}]``; empty groups are kept, an empty list gives one placeholder."""

    if not isinstance(payload, list):
        raise BonusError("Bonus data must be a list of groups")
    groups = tuple(
        new_group(text=str(item.get("text") or ""), member_ids=_member_ids(item.get("ids")))
        for item in payload
        if isinstance(item, dict)
    )
    return groups or (new_group(),)
