from __future__ import annotations

from typing import Any

from fastapi import HTTPException

from .. import storage
from ..schemas import MessageResponse


def load(username: str, kind: str) -> Any:
    try:
        return storage.read_document(username, kind)
    except storage.StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def save(username: str, kind: str, payload: Any, message: str) -> MessageResponse:
    try:
        storage.write_document(username, kind, payload)
    except storage.StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return MessageResponse(message=message)


def require_list(payload: Any, what: str) -> list:
    if not isinstance(payload, list):
        raise HTTPException(status_code=400, detail=f"{what} must be a JSON array")
    return payload
