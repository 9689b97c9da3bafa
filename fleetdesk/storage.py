from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from . import config
from .security import valid_username

logger = logging.getLogger(__name__)

# kind -> (file suffix, value returned when nothing is stored yet)
DOCUMENT_KINDS: dict[str, tuple[str, Any]] = {
    "ships": ("", []),
    "decks": ("_decks", []),
    "bonus": ("_bonus", []),
    "master": ("_master", {}),
    "stype_config": ("_stype_config", []),
}

# Documents whose corrupt content reads back as the default instead of failing.
_LENIENT_KINDS = {"master", "stype_config"}


class StorageError(Exception):
    """Raised when a per-user document cannot be read or written."""


def _empty_value(kind: str) -> Any:
    default = DOCUMENT_KINDS[kind][1]
    return type(default)()


def document_path(username: str, kind: str) -> Path:
    if kind not in DOCUMENT_KINDS:
        raise KeyError(kind)
    if not valid_username(username):
        raise ValueError(f"Invalid username: {username!r}")
    suffix = DOCUMENT_KINDS[kind][0]
    return Path(config.DATA_DIR) / f"{username}{suffix}.json"


def read_document(username: str, kind: str) -> Any:
    path = document_path(username, kind)
    if not path.exists():
        return _empty_value(kind)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.exception("Failed to read %s", path)
        raise StorageError("Failed to read stored data") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        if kind in _LENIENT_KINDS:
            logger.warning("Discarding unreadable %s document for %s", kind, username)
            return _empty_value(kind)
        raise StorageError("Failed to read stored data") from exc


def write_document(username: str, kind: str, payload: Any) -> None:
    path = document_path(username, kind)
    temp_path = path.with_suffix(".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        temp_path.replace(path)
    except OSError as exc:
        logger.exception("Failed to write %s", path)
        temp_path.unlink(missing_ok=True)
        raise StorageError("Failed to save data") from exc
    logger.debug("Stored %s document for %s", kind, username)
