"""Signed session tokens binding an account to its restaurant."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import jwt

TENANT_CLAIM = "restaurantId"
REQUIRED_CLAIMS = ("sub", "iat", "exp")
MIN_SECRET_BYTES = 32
DEFAULT_ALGORITHM = "HS256"
_SUPPORTED_ALGORITHMS = {"HS256", "HS384", "HS512"}


class TokenError(ValueError):
    """Raised when a session token cannot be decoded or lacks a usable claim."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Encode and validate HMAC-signed JWT session tokens."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = DEFAULT_ALGORITHM,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret or len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"Token signing secret must be at least {MIN_SECRET_BYTES} bytes long")
        if algorithm not in _SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported token algorithm: {algorithm}")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def encode(
        self,
        subject: str,
        tenant_id: int,
        ttl_millis: int,
        *,
        extra_claims: Optional[Mapping[str, Any]] = None,
    ) -> str:
        issued_at = self._clock()
        payload: Dict[str, Any] = dict(extra_claims or {})
        payload.update(
            {
                "sub": subject,
                TENANT_CLAIM: tenant_id,
                "iat": issued_at,
                "exp": issued_at + timedelta(milliseconds=ttl_millis),
            }
        )
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify the signature and return the claims without checking expiry."""

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": list(REQUIRED_CLAIMS),
                },
            )
        except jwt.PyJWTError as exc:
            raise TokenError(f"Invalid session token: {exc}") from exc

    def validate(self, token: str) -> bool:
        try:
            claims = self.decode(token)
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (TokenError, TypeError, ValueError, OverflowError, OSError):
            return False
        return expires_at > self._clock()

    def extract_subject(self, token: str) -> str:
        subject = self.decode(token).get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenError("Session token has no subject")
        return subject

    def extract_tenant_id(self, token: str) -> int:
        return tenant_id_from_claims(self.decode(token))


def tenant_id_from_claims(claims: Mapping[str, Any]) -> int:
    """Normalise the tenant claim, which may be serialised as a number or a numeric string."""

    raw = claims.get(TENANT_CLAIM)
    if isinstance(raw, bool) or raw is None:
        raise TokenError("Session token has no restaurant id")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError as exc:
            raise TokenError(f"Unparsable restaurant id in session token: {raw!r}") from exc
    raise TokenError(f"Unparsable restaurant id in session token: {raw!r}")


__all__ = [
    "DEFAULT_ALGORITHM",
    "MIN_SECRET_BYTES",
    "TENANT_CLAIM",
    "TokenCodec",
    "TokenError",
    "tenant_id_from_claims",
]
