from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from ..schemas import LoginForm, TokenResponse
from ..security import normalize_username, valid_username

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(form: LoginForm) -> TokenResponse:
    username = normalize_username(form.username)
    if not username:
        raise HTTPException(status_code=400, detail="Username is required")
    if not valid_username(username):
        raise HTTPException(status_code=400, detail="Username contains characters that are not allowed")
    logger.info("User %s logged in", username)
    return TokenResponse(token=username)
