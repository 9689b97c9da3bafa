from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from ..schemas import MasterUpload, MessageResponse
from ..security import get_current_user
from ..services import catalog
from . import documents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["master"])


@router.get("/master")
def load_master(current_user: str = Depends(get_current_user())) -> Any:
    stored = documents.load(current_user, "master")
    return stored if isinstance(stored, dict) else {}


@router.post("/master", response_model=MessageResponse)
def save_master(
    upload: MasterUpload,
    current_user: str = Depends(get_current_user()),
) -> MessageResponse:
    try:
        tables = catalog.normalize_master_payload(upload.data)
    except catalog.CatalogError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info(
        "Storing master data for %s: %d units, %d categories",
        current_user,
        len(tables[catalog.UNIT_TABLE]),
        len(tables[catalog.CATEGORY_TABLE]),
    )
    return documents.save(current_user, "master", tables, "Master data saved")
