from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from tokenvault.core.errors import InactiveCredential, InvalidCredential, ReuseDetected
from tokenvault.core.tokens import (
    Principal,
    TokenSigner,
    TokenVerificationError,
    sha256_hex,
)
from tokenvault.models.session_record import SessionRecord, utcnow
from tokenvault.services.session_store import SessionRecordStore

log = logging.getLogger(__name__)

MAX_IP_LENGTH = 45
MAX_AGENT_LENGTH = 255

_BLOCK_RE = re.compile(r"<(script|style)\b[^>]*>.*?(</\1\s*>|$)", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_CTRL_RE = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True)
class RequestMeta:
    ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def safe_ip(ip: Optional[str]) -> Optional[str]:
    if not isinstance(ip, str):
        return None
    return ip[:MAX_IP_LENGTH]


def safe_user_agent(ua: Optional[str]) -> str:
    if not ua or not isinstance(ua, str):
        return "unknown"
    cleaned = _CTRL_RE.sub("", _TAG_RE.sub("", _BLOCK_RE.sub("", ua))).strip()
    return cleaned[:MAX_AGENT_LENGTH] or "unknown"


class TokenService:
    """Issues, rotates and revokes token pairs backed by a session record store.

    The service keeps no state between calls. Concurrent rotations of the same
    refresh token are resolved by ``store.revoke_one_active``; only the caller
    whose conditional update lands gets a new pair.
    """

    def __init__(
        self,
        store: SessionRecordStore,
        signer: TokenSigner,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.signer = signer
        self.clock = clock

    def issue(self, principal: Principal, meta: Optional[RequestMeta] = None) -> TokenPair:
        """Mint a pair and persist only the digest of the refresh token."""
        meta = meta or RequestMeta()
        access_token = self.signer.sign_access(principal)
        refresh_token, expires_at = self.signer.sign_refresh(principal)

        self.store.create(
            SessionRecord(
                token_digest=sha256_hex(refresh_token),
                subject=principal.id,
                issued_at=self.clock(),
                expires_at=expires_at,
                origin_ip=safe_ip(meta.ip),
                origin_agent=safe_user_agent(meta.user_agent),
            )
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def rotate(self, presented: str, meta: Optional[RequestMeta] = None) -> TokenPair:
        """
        Exchange a refresh token for a new pair.
        - bad signature/expiry: InvalidCredential, store untouched
        - valid signature but unknown digest: reuse, every session of the subject is revoked
        - known but revoked/expired: InactiveCredential, no cascade
        - active: old record revoked first, then the successor is issued and linked
        """
        try:
            claims = self.signer.verify_refresh(presented)
            subject = UUID(claims["sub"])
        except (TokenVerificationError, ValueError) as exc:
            log.info("refresh token rejected: %s", exc)
            raise InvalidCredential("Invalid refresh token") from exc

        digest = sha256_hex(presented)
        existing = self.store.find_by_digest(digest)
        now = self.clock()

        if existing is None:
            revoked = self.store.revoke_all_active_for_subject(subject, now)
            log.warning(
                "Refresh token reuse detected sub=%s hash=%s... revoked=%d",
                subject,
                digest[:8],
                revoked,
            )
            raise ReuseDetected("Refresh token reuse detected, all sessions revoked")

        if not existing.is_active(now):
            state = "revoked" if existing.revoked_at is not None else "expired"
            log.info("Inactive refresh token presented (%s) hash=%s...", state, digest[:8])
            raise InactiveCredential("Refresh token not active")

        # revoke first, then issue
        if not self.store.revoke_one_active(digest, now):
            log.info("Refresh token lost a concurrent rotation hash=%s...", digest[:8])
            raise InactiveCredential("Refresh token not active")
        existing.revoked_at = now

        principal = Principal(id=existing.subject, identity=claims.get("email") or "")
        pair = self.issue(principal, meta)

        existing.replaced_by_digest = sha256_hex(pair.refresh_token)
        self.store.save(existing)
        return pair

    def revoke(self, presented: str) -> bool:
        """Revoke one refresh token. No signature check, so stale tokens still get cleaned up."""
        digest = sha256_hex(presented)
        changed = self.store.revoke_one_active(digest, self.clock())
        if changed:
            log.info("Refresh token revoked hash=%s...", digest[:8])
        else:
            log.warning("Logout with invalid or already revoked refresh token hash=%s...", digest[:8])
        return changed

    def revoke_all(self, subject: UUID) -> int:
        count = self.store.revoke_all_active_for_subject(subject, self.clock())
        log.info("Revoked %d refresh tokens for user %s", count, subject)
        return count
