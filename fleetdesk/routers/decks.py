from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from ..schemas import MessageResponse
from ..security import get_current_user
from ..services import fleets
from . import documents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["decks"])


@router.get("/decks")
def load_decks(current_user: str = Depends(get_current_user())) -> Any:
    return documents.load(current_user, "decks")


@router.post("/decks", response_model=MessageResponse)
def save_decks(
    payload: Any = Body(...),
    current_user: str = Depends(get_current_user()),
) -> MessageResponse:
    try:
        fleets.check_slot_limits(payload)
    except fleets.FleetError as exc:
        logger.info("Rejected deck data from %s: %s", current_user, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return documents.save(current_user, "decks", payload, "Fleets saved")
