from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from tokenvault.core.config import Settings, get_settings
from tokenvault.core.tokens import Principal, TokenSigner, TokenVerificationError
from tokenvault.db.session import get_session
from tokenvault.services.auth_service import TokenService
from tokenvault.services.session_store import SqlSessionStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_signer(settings: Settings = Depends(get_settings)) -> TokenSigner:
    return TokenSigner.from_settings(settings)


def get_token_service(
    db: Session = Depends(get_session),
    signer: TokenSigner = Depends(get_signer),
) -> TokenService:
    return TokenService(SqlSessionStore(db), signer)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_principal(
    token: str | None = Depends(oauth2_scheme),
    signer: TokenSigner = Depends(get_signer),
) -> Principal:
    """Strict auth dependency; raises when the bearer access token is missing or invalid."""
    if not token:
        raise _unauthorized()
    try:
        payload = signer.verify_access(token)
        return Principal(id=UUID(payload["sub"]), identity=payload.get("email") or "")
    except (TokenVerificationError, ValueError):
        raise _unauthorized()
