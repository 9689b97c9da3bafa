from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..schemas import MessageResponse
from ..security import get_current_user
from . import documents

router = APIRouter(prefix="/api", tags=["bonus"])


@router.get("/bonus")
def load_bonus(current_user: str = Depends(get_current_user())) -> Any:
    return documents.load(current_user, "bonus")


@router.post("/bonus", response_model=MessageResponse)
def save_bonus(
    payload: Any = Body(...),
    current_user: str = Depends(get_current_user()),
) -> MessageResponse:
    groups = documents.require_list(payload, "Bonus data")
    return documents.save(current_user, "bonus", groups, "Bonus data saved")
