from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple
from uuid import UUID, uuid4

from jose import jwt, JWTError
from jose.exceptions import ExpiredSignatureError

from tokenvault.core.config import Settings

# ← python-jose 사용

ACCESS = "access"
REFRESH = "refresh"


class TokenVerificationError(Exception):
    pass


class TokenExpired(TokenVerificationError):
    pass


class TokenInvalid(TokenVerificationError):
    pass


@dataclass(frozen=True)
class Principal:
    id: UUID
    identity: str


# ---- 공통 ----
def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


class TokenSigner:
    """Mints and verifies access/refresh JWTs.

    Each kind has its own secret and lifetime. Verification checks signature,
    algorithm, issuer, audience, expiry and the ``typ`` claim; it never looks at
    stored sessions.
    """

    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        issuer: str = "tokenvault",
        audience: str = "tokenvault-users",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenSigner":
        return cls(
            access_secret=settings.access_secret,
            refresh_secret=settings.refresh_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
        )

    def _make_jwt(self, principal: Principal, typ: str, secret: str, ttl: timedelta) -> Tuple[str, datetime]:
        now = _utcnow()
        exp = now + ttl
        payload: Dict[str, Any] = {
            "sub": str(principal.id),
            "email": principal.identity,
            "typ": typ,
            "jti": str(uuid4()),
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "iss": self.issuer,
            "aud": self.audience,
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm), exp

    def _decode(self, token: str, secret: str, typ: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired(str(exc)) from exc
        except JWTError as exc:
            raise TokenInvalid(str(exc)) from exc

        if payload.get("typ") != typ:
            raise TokenInvalid("Invalid token type")
        for k in ("sub", "jti", "exp"):
            if k not in payload:
                raise TokenInvalid(f"Missing {k}")
        return payload

    # ---- Access Token ----
    def sign_access(self, principal: Principal) -> str:
        token, _ = self._make_jwt(principal, ACCESS, self.access_secret, self.access_ttl)
        return token

    def verify_access(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.access_secret, ACCESS)

    # ---- Refresh Token (회전 전제) ----
    def sign_refresh(self, principal: Principal) -> Tuple[str, datetime]:
        """Returns the token and its expiry as aware UTC, matching stored timestamps."""
        token, exp = self._make_jwt(principal, REFRESH, self.refresh_secret, self.refresh_ttl)
        return token, exp

    def verify_refresh(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.refresh_secret, REFRESH)
