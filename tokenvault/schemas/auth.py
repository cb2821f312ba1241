from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

_PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "lowercase"),
    (re.compile(r"[A-Z]"), "uppercase"),
    (re.compile(r"\d"), "digit"),
    (re.compile(r"[^A-Za-z0-9]"), "symbol"),
)


def _normalize_email(v: str) -> str:
    return v.strip().lower()


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    confirm_password: str
    name: Optional[str] = ""

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return _normalize_email(v) if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        for pattern, label in _PASSWORD_RULES:
            if not pattern.search(v):
                raise ValueError(f"Password must include at least one {label}")
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Confirm password must match password")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return _normalize_email(v) if isinstance(v, str) else v


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class UserOut(BaseModel):
    id: str
    email: str
    name: str


class AuthResponse(BaseModel):
    user: UserOut
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshResponse(BaseModel):
    message: str = "Tokens refreshed"
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str


class LogoutAllResponse(BaseModel):
    message: str
    revoked: int
