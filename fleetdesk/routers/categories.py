from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..schemas import MessageResponse
from ..security import get_current_user
from . import documents

router = APIRouter(prefix="/api", tags=["categories"])


@router.get("/stype_config")
def load_category_config(current_user: str = Depends(get_current_user())) -> Any:
    return documents.load(current_user, "stype_config")


@router.post("/stype_config", response_model=MessageResponse)
def save_category_config(
    payload: Any = Body(...),
    current_user: str = Depends(get_current_user()),
) -> MessageResponse:
    buckets = documents.require_list(payload, "Category configuration")
    return documents.save(current_user, "stype_config", buckets, "Category configuration saved")
