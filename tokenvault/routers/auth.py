from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session, select

from tokenvault.core.security import hash_password, verify_password
from tokenvault.core.tokens import Principal, sha256_hex
from tokenvault.db.session import get_session
from tokenvault.dependencies.auth import get_current_principal, get_token_service
from tokenvault.models.user import User
from tokenvault.schemas.auth import (
    AuthResponse,
    LoginRequest,
    LogoutAllResponse,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    UserOut,
)
from tokenvault.services.auth_service import RequestMeta, TokenService

log = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])


def _request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _user_out(user: User) -> UserOut:
    return UserOut(id=str(user.user_id), email=user.email, name=user.name)


@auth_router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    db: Session = Depends(get_session),
    tokens: TokenService = Depends(get_token_service),
):
    if db.exec(select(User).where(User.email == body.email)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")

    user = User(
        email=body.email,
        name=(body.name or "").strip(),
        password_hash=hash_password(body.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    pair = tokens.issue(user.to_principal(), _request_meta(request))
    log.info("User registered user_id=%s", user.user_id)
    return AuthResponse(user=_user_out(user), access_token=pair.access_token, refresh_token=pair.refresh_token)


@auth_router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    request: Request,
    db: Session = Depends(get_session),
    tokens: TokenService = Depends(get_token_service),
):
    user = db.exec(select(User).where(User.email == body.email)).first()
    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    pair = tokens.issue(user.to_principal(), _request_meta(request))
    return AuthResponse(user=_user_out(user), access_token=pair.access_token, refresh_token=pair.refresh_token)


@auth_router.post("/refresh", response_model=RefreshResponse)
def refresh(
    body: RefreshRequest,
    request: Request,
    tokens: TokenService = Depends(get_token_service),
):
    """
    Rotate a refresh token.
    Credential failures surface as a bare 401 via the CredentialError handler.
    """
    meta = _request_meta(request)
    pair = tokens.rotate(body.refresh_token.strip(), meta)
    log.info("Refresh token rotated ip=%s", meta.ip)
    return RefreshResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


@auth_router.post("/logout", response_model=MessageResponse)
def logout(
    body: RefreshRequest,
    tokens: TokenService = Depends(get_token_service),
):
    """Always 200, whether or not the token matched an active session."""
    token = body.refresh_token.strip()
    try:
        tokens.revoke(token)
    except Exception:
        log.exception("Error during logout hash=%s...", sha256_hex(token)[:8])
    return MessageResponse(message="Logged out.")


@auth_router.post("/logout-all", response_model=LogoutAllResponse)
def logout_all(
    principal: Principal = Depends(get_current_principal),
    tokens: TokenService = Depends(get_token_service),
):
    revoked = tokens.revoke_all(principal.id)
    if revoked > 0:
        return LogoutAllResponse(message="Logged out from all devices.", revoked=revoked)
    return LogoutAllResponse(message="No active sessions to log out from.", revoked=0)
