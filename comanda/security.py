"""Bearer session token authentication for the restaurant API."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .models import UserRole
from .tokens import TokenCodec, TokenError, tenant_id_from_claims

_AUTHENTICATE_HEADERS = {"WWW-Authenticate": "Bearer"}


@dataclass(frozen=True)
class TokenIdentity:
    """Caller identity recovered from a validated session token."""

    subject: str
    restaurant_id: int
    user_id: Optional[int] = None
    role: Optional[UserRole] = None

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


def _optional_int(value: object) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _optional_role(value: object) -> Optional[UserRole]:
    if not isinstance(value, str):
        return None
    try:
        return UserRole(value)
    except ValueError:
        return None


class BearerTokenAuth:
    """Validate ``Authorization: Bearer`` session tokens and expose the caller's tenant."""

    def __init__(self, codec: TokenCodec) -> None:
        self._codec = codec
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> TokenIdentity:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token requerido",
                headers=_AUTHENTICATE_HEADERS,
            )
        return self.identify(credentials.credentials)

    def identify(self, token: str) -> TokenIdentity:
        if not self._codec.validate(token):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token inválido o expirado",
                headers=_AUTHENTICATE_HEADERS,
            )
        try:
            claims = self._codec.decode(token)
            restaurant_id = tenant_id_from_claims(claims)
        except TokenError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token inválido o expirado",
                headers=_AUTHENTICATE_HEADERS,
            ) from exc

        return TokenIdentity(
            subject=str(claims["sub"]),
            restaurant_id=restaurant_id,
            user_id=_optional_int(claims.get("uid")),
            role=_optional_role(claims.get("role")),
        )


def ensure_admin(identity: TokenIdentity) -> TokenIdentity:
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Se requiere el rol de administrador",
        )
    return identity


__all__ = ["BearerTokenAuth", "TokenIdentity", "ensure_admin"]
