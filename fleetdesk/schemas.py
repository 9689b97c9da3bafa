from typing import Any

from pydantic import BaseModel, Field


class LoginForm(BaseModel):
    username: str = Field("", max_length=64)


class TokenResponse(BaseModel):
    token: str


class MessageResponse(BaseModel):
    message: str


class MasterUpload(BaseModel):
    data: Any = None
