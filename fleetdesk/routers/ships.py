from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..schemas import MessageResponse
from ..security import get_current_user
from . import documents

router = APIRouter(prefix="/api", tags=["ships"])


@router.get("/ships")
def load_ships(current_user: str = Depends(get_current_user())) -> Any:
    return documents.load(current_user, "ships")


@router.post("/ships", response_model=MessageResponse)
def save_ships(
    payload: Any = Body(...),
    current_user: str = Depends(get_current_user()),
) -> MessageResponse:
    units = documents.require_list(payload, "Roster")
    return documents.save(current_user, "ships", units, "Roster saved")
