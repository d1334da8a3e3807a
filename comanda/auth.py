"""Restaurant registration and login."""
from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import timedelta
from typing import Callable, ContextManager, Optional, Protocol

from .database import DuplicateRecordError
from .models import Restaurant, User, UserRole
from .passwords import PasswordHasher, password_too_long
from .tokens import TokenCodec

logger = logging.getLogger("comanda.auth")

DEFAULT_SESSION_TTL = timedelta(days=1)
REMEMBER_ME_SESSION_TTL = timedelta(days=30)

REGISTRATION_COMPLETE = "Registro completado exitosamente"
MISSING_REGISTRATION_FIELDS = "Todos los campos son obligatorios"
PASSWORD_TOO_LONG = "La contraseña no puede superar los 72 bytes"
RESTAURANT_NAME_TAKEN = "El nombre del restaurante ya está en uso"
EMAIL_TAKEN = "El correo electrónico ya está en uso"
MISSING_LOGIN_FIELDS = "Correo y contraseña son obligatorios"
INVALID_CREDENTIALS = "Credenciales inválidas"


class AuthError(Exception):
    """Base class for registration and login failures shown to the caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    """A required field is missing or blank."""


class ConflictError(AuthError):
    """The restaurant name or account email is already in use."""


class AuthenticationError(AuthError):
    """Unknown email or wrong password. The message never says which."""


class AccountStore(Protocol):
    def find_user_by_email(self, email: str) -> Optional[User]: ...

    def user_exists_by_email(self, email: str) -> bool: ...

    def save_user(self, user: User) -> User: ...


class RestaurantStore(Protocol):
    def find_restaurant_by_name(self, name: str) -> Optional[Restaurant]: ...

    def save_restaurant(self, restaurant: Restaurant) -> Restaurant: ...


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class AuthService:
    """Registers restaurants with their administrator and issues session tokens."""

    def __init__(
        self,
        accounts: AccountStore,
        restaurants: RestaurantStore,
        hasher: PasswordHasher,
        tokens: TokenCodec,
        *,
        transaction: Optional[Callable[[], ContextManager[object]]] = None,
    ) -> None:
        self._accounts = accounts
        self._restaurants = restaurants
        self._hasher = hasher
        self._tokens = tokens
        self._transaction = transaction or nullcontext

    def register(
        self,
        full_name: Optional[str],
        restaurant_name: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> str:
        if any(_is_blank(value) for value in (full_name, restaurant_name, email, password)):
            raise ValidationError(MISSING_REGISTRATION_FIELDS)
        if password_too_long(password):
            raise ValidationError(PASSWORD_TOO_LONG)

        if self._restaurants.find_restaurant_by_name(restaurant_name) is not None:
            raise ConflictError(RESTAURANT_NAME_TAKEN)
        if self._accounts.user_exists_by_email(email):
            raise ConflictError(EMAIL_TAKEN)

        password_hash = self._hasher.hash(password)

        # The pre-checks above are not atomic; the UNIQUE constraints are.
        try:
            with self._transaction():
                restaurant = self._restaurants.save_restaurant(
                    Restaurant(name=restaurant_name, active=True)
                )
                admin = self._accounts.save_user(
                    User(
                        restaurant_id=restaurant.id,
                        full_name=full_name,
                        email=email,
                        password_hash=password_hash,
                        role=UserRole.ADMIN,
                        active=True,
                    )
                )
        except DuplicateRecordError as exc:
            raise ConflictError(EMAIL_TAKEN if exc.field == "email" else RESTAURANT_NAME_TAKEN) from exc

        logger.info("Registered restaurant %s with administrator account %s", restaurant.id, admin.id)
        return REGISTRATION_COMPLETE

    def login(
        self,
        email: Optional[str],
        password: Optional[str],
        remember_me: Optional[bool] = None,
    ) -> str:
        if _is_blank(email) or _is_blank(password):
            raise ValidationError(MISSING_LOGIN_FIELDS)

        user = self._accounts.find_user_by_email(email)
        if user is None or not user.active or not self._hasher.matches(password, user.password_hash):
            logger.warning("Rejected login attempt")
            raise AuthenticationError(INVALID_CREDENTIALS)

        ttl = REMEMBER_ME_SESSION_TTL if remember_me else DEFAULT_SESSION_TTL
        token = self._tokens.encode(
            user.full_name,
            user.restaurant_id,
            int(ttl.total_seconds() * 1000),
            extra_claims={"uid": user.id, "role": user.role.value},
        )
        logger.info("Issued session token for account %s (restaurant %s)", user.id, user.restaurant_id)
        return token


__all__ = [
    "AccountStore",
    "AuthError",
    "AuthService",
    "AuthenticationError",
    "ConflictError",
    "DEFAULT_SESSION_TTL",
    "REMEMBER_ME_SESSION_TTL",
    "RestaurantStore",
    "ValidationError",
]
