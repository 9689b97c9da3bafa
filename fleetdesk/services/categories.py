from __future__ import annotations

from typing import Any, Iterable, Sequence

from ..models import CategoryBucket
from .catalog import Catalog

REMAINDER_NAME = "Other"

Buckets = tuple[CategoryBucket, ...]


class CategoryError(Exception):
    """Raised when a bucket edit would leave duplicate or reserved names."""


def _as_ids(values: Any) -> frozenset[int]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        return frozenset()
    ids: set[int] = set()
    for value in values:
        if isinstance(value, bool):
            continue
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            continue
    return frozenset(ids)


def load_buckets(payload: Any) -> Buckets:
    """Parse the stored bucket list, dropping unnamed, duplicate and remainder entries."""

    if not isinstance(payload, list):
        return ()
    buckets: list[CategoryBucket] = []
    seen: set[str] = set()
    for item in payload:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        if not name or name == REMAINDER_NAME or name in seen:
            continue
        seen.add(name)
        buckets.append(CategoryBucket(name=name, category_ids=_as_ids(item.get("ids"))))
    return tuple(buckets)


def buckets_to_payload(buckets: Sequence[CategoryBucket]) -> list[dict[str, Any]]:
    return [{"name": bucket.name, "ids": sorted(bucket.category_ids)} for bucket in buckets]


def bucket_names(buckets: Sequence[CategoryBucket]) -> list[str]:
    """User-visible bucket names; the remainder bucket is always last."""

    return [bucket.name for bucket in buckets] + [REMAINDER_NAME]


def claimed_ids(buckets: Iterable[CategoryBucket]) -> set[int]:
    claimed: set[int] = set()
    for bucket in buckets:
        claimed.update(bucket.category_ids)
    return claimed


def remainder_ids(buckets: Sequence[CategoryBucket], known_ids: Iterable[int]) -> list[int]:
    claimed = claimed_ids(buckets)
    return sorted(cid for cid in set(known_ids) if cid not in claimed)


def matches(buckets: Sequence[CategoryBucket], selected: str | None, category_id: int | None) -> bool:
    """Return True when ``category_id`` belongs to the selected bucket.

    ``selected=None`` selects everything. The remainder bucket is derived from
    the current definitions on every call.
    """

    if selected is None:
        return True
    if selected == REMAINDER_NAME:
        return category_id is None or category_id not in claimed_ids(buckets)
    for bucket in buckets:
        if bucket.name == selected:
            return category_id is not None and category_id in bucket.category_ids
    return False


def _check_name(buckets: Sequence[CategoryBucket], name: str, skip: int | None = None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise CategoryError("Bucket name is required")
    if cleaned == REMAINDER_NAME:
        raise CategoryError(f"{REMAINDER_NAME!r} is reserved")
    for index, bucket in enumerate(buckets):
        if index != skip and bucket.name == cleaned:
            raise CategoryError(f"Bucket {cleaned!r} already exists")
    return cleaned


def _check_index(buckets: Sequence[CategoryBucket], index: int) -> None:
    if not 0 <= index < len(buckets):
        raise CategoryError(f"No bucket at position {index}")


def add_bucket(buckets: Sequence[CategoryBucket], name: str) -> Buckets:
    cleaned = _check_name(buckets, name)
    return (*buckets, CategoryBucket(name=cleaned))


def rename_bucket(buckets: Sequence[CategoryBucket], index: int, name: str) -> Buckets:
    _check_index(buckets, index)
    cleaned = _check_name(buckets, name, skip=index)
    updated = list(buckets)
    updated[index] = CategoryBucket(name=cleaned, category_ids=buckets[index].category_ids)
    return tuple(updated)


def remove_bucket(buckets: Sequence[CategoryBucket], index: int) -> Buckets:
    _check_index(buckets, index)
    return tuple(bucket for position, bucket in enumerate(buckets) if position != index)


def assign_category(buckets: Sequence[CategoryBucket], index: int, category_id: int) -> Buckets:
    """Move ``category_id`` into the bucket at ``index``; a category has one owner."""

    _check_index(buckets, index)
    updated: list[CategoryBucket] = []
    for position, bucket in enumerate(buckets):
        ids = set(bucket.category_ids)
        if position == index:
            ids.add(category_id)
        else:
            ids.discard(category_id)
        updated.append(CategoryBucket(name=bucket.name, category_ids=frozenset(ids)))
    return tuple(updated)


def release_category(buckets: Sequence[CategoryBucket], index: int, category_id: int) -> Buckets:
    _check_index(buckets, index)
    updated = list(buckets)
    bucket = buckets[index]
    updated[index] = CategoryBucket(name=bucket.name, category_ids=bucket.category_ids - {category_id})
    return tuple(updated)


def default_buckets(catalog: Catalog) -> Buckets:
    """One bucket per distinct category name, in category id order."""

    grouped: dict[str, set[int]] = {}
    for category_id in sorted(catalog.categories):
        name = catalog.categories[category_id].strip()
        if not name or name == REMAINDER_NAME:
            continue
        grouped.setdefault(name, set()).add(category_id)
    return tuple(CategoryBucket(name=name, category_ids=frozenset(ids)) for name, ids in grouped.items())
