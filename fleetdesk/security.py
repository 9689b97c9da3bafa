from __future__ import annotations

import re
from typing import Any, Optional

from fastapi import Header, HTTPException, status

TOKEN_HEADER = "x-user-token"

_USERNAME_RE = re.compile(r"[A-Za-z0-9_-]+")


def valid_username(raw: Any) -> bool:
    if not isinstance(raw, str):
        return False
    return bool(_USERNAME_RE.fullmatch(raw))


def normalize_username(raw: Any) -> str:
    return str(raw or "").strip().lower()


def get_current_user(optional: bool = False):
    def dependency(
        x_user_token: Optional[str] = Header(default=None, alias=TOKEN_HEADER),
    ) -> Optional[str]:
        token = (x_user_token or "").strip()
        if not token:
            if optional:
                return None
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        if not valid_username(token):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username contains characters that are not allowed",
            )
        return token

    return dependency
