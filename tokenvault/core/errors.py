from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Missing or weak configuration. Raised at startup only."""


class ServiceError(Exception):
    """Base class for service-layer failures mapped to HTTP responses.

    ``kind`` is a stable machine-readable tag used in logs. It is never sent to
    the client for credential failures, so callers cannot tell an expired token
    from a revoked or replayed one.
    """

    status_code: int = 500
    kind: str = "server_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CredentialError(ServiceError):
    status_code = 401
    kind = "unauthorized"


class InvalidCredential(CredentialError):
    """Signature, format or expiry check failed on the presented token."""
    kind = "invalid_credential"


class InactiveCredential(CredentialError):
    """Token verifies but its session record is revoked or expired."""
    kind = "inactive_credential"


class ReuseDetected(CredentialError):
    """Token verifies but no session record exists for it."""
    kind = "reuse_detected"


class StoreError(ServiceError):
    status_code = 503
    kind = "store_error"


class StoreConflict(StoreError):
    """Digest collision on insert. Safe to retry."""
    kind = "store_conflict"


class StoreUnavailable(StoreError):
    kind = "store_unavailable"


__all__ = [
    "ConfigurationError",
    "ServiceError",
    "CredentialError",
    "InvalidCredential",
    "InactiveCredential",
    "ReuseDetected",
    "StoreError",
    "StoreConflict",
    "StoreUnavailable",
]
