"""Staff account management scoped to a single restaurant."""
from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import List, Optional

from .database import Database, DuplicateRecordError
from .models import User, UserRole
from .passwords import PasswordHasher, password_too_long

logger = logging.getLogger("comanda.users")

FULL_NAME_MIN_LENGTH = 2
FULL_NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 100
PASSWORD_MIN_LENGTH = 6

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


def _validate_full_name(full_name: Optional[str]) -> str:
    cleaned = (full_name or "").strip()
    if not cleaned:
        raise ValueError("El nombre completo es obligatorio")
    if not FULL_NAME_MIN_LENGTH <= len(cleaned) <= FULL_NAME_MAX_LENGTH:
        raise ValueError(
            f"El nombre completo debe tener entre {FULL_NAME_MIN_LENGTH} y {FULL_NAME_MAX_LENGTH} caracteres"
        )
    return cleaned


def _validate_email(email: Optional[str]) -> str:
    cleaned = (email or "").strip()
    if not cleaned:
        raise ValueError("El email es obligatorio")
    if len(cleaned) > EMAIL_MAX_LENGTH:
        raise ValueError(f"El email no puede exceder {EMAIL_MAX_LENGTH} caracteres")
    if not _EMAIL_PATTERN.match(cleaned):
        raise ValueError("El formato del email no es válido")
    return cleaned


def _validate_password(password: Optional[str]) -> str:
    if not password or not password.strip():
        raise ValueError("La contraseña es obligatoria")
    if len(password) < PASSWORD_MIN_LENGTH or password_too_long(password):
        raise ValueError(f"La contraseña debe tener entre {PASSWORD_MIN_LENGTH} caracteres y 72 bytes")
    return password


class UserService:
    """CRUD operations over the staff accounts of one restaurant.

    Every method takes the caller's ``restaurant_id``; accounts belonging to a
    different restaurant are reported as missing.
    """

    def __init__(self, database: Database, hasher: PasswordHasher) -> None:
        self._database = database
        self._hasher = hasher

    def create_user(
        self,
        restaurant_id: int,
        *,
        full_name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        role: Optional[UserRole],
        active: bool = True,
    ) -> User:
        if self._database.get_restaurant(restaurant_id) is None:
            raise ValueError(f"Restaurante no encontrado con ID: {restaurant_id}")

        cleaned_name = _validate_full_name(full_name)
        cleaned_email = _validate_email(email)
        checked_password = _validate_password(password)
        if role is None:
            raise ValueError("El rol es obligatorio")

        if self._database.user_exists_by_email(cleaned_email):
            raise ValueError(f"Ya existe un usuario con el email: {cleaned_email}")

        try:
            user = self._database.save_user(
                User(
                    restaurant_id=restaurant_id,
                    full_name=cleaned_name,
                    email=cleaned_email,
                    password_hash=self._hasher.hash(checked_password),
                    role=role,
                    active=active,
                )
            )
        except DuplicateRecordError as exc:
            raise ValueError(f"Ya existe un usuario con el email: {cleaned_email}") from exc

        logger.info("Created %s account %s in restaurant %s", role.value, user.id, restaurant_id)
        return user

    def get_user(self, restaurant_id: int, user_id: int) -> Optional[User]:
        user = self._database.get_user(user_id)
        if user is None or user.restaurant_id != restaurant_id:
            return None
        return user

    def get_user_by_email(self, restaurant_id: int, email: str) -> Optional[User]:
        user = self._database.find_user_by_email(email)
        if user is None or user.restaurant_id != restaurant_id:
            return None
        return user

    def list_users(self, restaurant_id: int, *, active_only: bool = False) -> List[User]:
        return self._database.list_users(restaurant_id, active=True if active_only else None)

    def list_users_by_role(self, restaurant_id: int, role: str) -> List[User]:
        return self._database.list_users(restaurant_id, role=UserRole.parse(role))

    def update_user(
        self,
        restaurant_id: int,
        user_id: int,
        *,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        role: Optional[UserRole] = None,
        active: Optional[bool] = None,
    ) -> Optional[User]:
        """Apply the supplied fields; ``None`` leaves a field unchanged."""

        existing = self.get_user(restaurant_id, user_id)
        if existing is None:
            return None

        changes = {}
        if full_name is not None:
            changes["full_name"] = _validate_full_name(full_name)
        if email is not None:
            cleaned_email = _validate_email(email)
            if cleaned_email.lower() != existing.email and self._database.user_exists_by_email(cleaned_email):
                raise ValueError(f"Ya existe un usuario con el email: {cleaned_email}")
            changes["email"] = cleaned_email
        if password is not None:
            changes["password_hash"] = self._hasher.hash(_validate_password(password))
        if role is not None:
            changes["role"] = role
        if active is not None:
            changes["active"] = active

        if not changes:
            return existing

        try:
            return self._database.save_user(replace(existing, **changes))
        except DuplicateRecordError as exc:
            raise ValueError(f"Ya existe un usuario con el email: {email}") from exc

    def set_active(self, restaurant_id: int, user_id: int, active: bool) -> Optional[User]:
        return self.update_user(restaurant_id, user_id, active=active)

    def delete_user(self, restaurant_id: int, user_id: int) -> bool:
        if self.get_user(restaurant_id, user_id) is None:
            return False
        deleted = self._database.delete_user(user_id)
        if deleted:
            logger.info("Deleted account %s from restaurant %s", user_id, restaurant_id)
        return deleted

    def email_exists(self, email: str) -> bool:
        return self._database.user_exists_by_email(email)

    def count_users(self, restaurant_id: int, *, active_only: bool = False) -> int:
        return self._database.count_users(restaurant_id, active=True if active_only else None)


__all__ = ["PASSWORD_MIN_LENGTH", "UserService"]
