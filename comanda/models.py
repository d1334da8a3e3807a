"""Domain models for restaurants, their staff accounts and menu products."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    """Roles a staff account can hold inside its restaurant."""

    ADMIN = "ADMIN"
    MESERO = "MESERO"
    COCINERO = "COCINERO"

    @property
    def description(self) -> str:
        return _ROLE_DESCRIPTIONS[self]

    @property
    def is_admin(self) -> bool:
        return self is UserRole.ADMIN

    @classmethod
    def parse(cls, value: str) -> "UserRole":
        """Resolve a role name case-insensitively."""

        try:
            return cls(value.strip().upper())
        except ValueError as exc:
            raise ValueError(f"Rol no válido: {value}") from exc


_ROLE_DESCRIPTIONS = {
    UserRole.ADMIN: "Administrador",
    UserRole.MESERO: "Mesero",
    UserRole.COCINERO: "Cocinero",
}


class ProductCategory(str, Enum):
    """Menu sections a product can be listed under."""

    ENTRADAS = "ENTRADAS"
    PLATOS_PRINCIPALES = "PLATOS_PRINCIPALES"
    ENSALADAS = "ENSALADAS"
    PESCADOS = "PESCADOS"
    POSTRES = "POSTRES"
    BEBIDAS = "BEBIDAS"
    PASTAS = "PASTAS"
    LICORES = "LICORES"
    ADICIONALES = "ADICIONALES"

    @property
    def description(self) -> str:
        return _CATEGORY_DESCRIPTIONS[self]


_CATEGORY_DESCRIPTIONS = {
    ProductCategory.ENTRADAS: "Entradas",
    ProductCategory.PLATOS_PRINCIPALES: "Platos principales",
    ProductCategory.ENSALADAS: "Ensaladas",
    ProductCategory.PESCADOS: "Pescados",
    ProductCategory.POSTRES: "Postres",
    ProductCategory.BEBIDAS: "Bebidas",
    ProductCategory.PASTAS: "Pastas",
    ProductCategory.LICORES: "Licores",
    ProductCategory.ADICIONALES: "Adicionales",
}


@dataclass(frozen=True)
class Restaurant:
    """A tenant. Every account and product belongs to exactly one restaurant."""

    name: str
    active: bool = True
    email: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class User:
    """A staff account stored in the restaurant database."""

    restaurant_id: int
    full_name: str
    email: str
    password_hash: str = field(repr=False)
    role: UserRole
    active: bool = True
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Product:
    """A menu item offered by a restaurant."""

    restaurant_id: int
    name: str
    price: float
    category: ProductCategory
    description: Optional[str] = None
    image_url: Optional[str] = None
    available: bool = True
    id: Optional[int] = None
    created_at: Optional[datetime] = None


__all__ = ["Product", "ProductCategory", "Restaurant", "User", "UserRole"]
