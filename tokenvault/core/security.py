# tokenvault/core/security.py
from __future__ import annotations

from passlib.context import CryptContext

# -------------------------------------------------------------------
# Password hashing (Argon2)
# -------------------------------------------------------------------
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)
