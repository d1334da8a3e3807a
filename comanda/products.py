"""Menu products scoped to a single restaurant."""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import List, Optional

from .database import Database
from .models import Product, ProductCategory

logger = logging.getLogger("comanda.products")

DESCRIPTION_MAX_LENGTH = 500


def _validate_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("El nombre del producto es obligatorio")
    return cleaned


def _validate_price(price: Optional[float]) -> float:
    if price is None or not math.isfinite(price) or price <= 0:
        raise ValueError("El precio del producto debe ser mayor a 0")
    return float(price)


def _validate_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    cleaned = description.strip()
    if len(cleaned) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"La descripción no puede exceder {DESCRIPTION_MAX_LENGTH} caracteres")
    return cleaned or None


class ProductService:
    """Create, list, update and delete the menu of one restaurant."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def create_product(
        self,
        restaurant_id: int,
        *,
        name: Optional[str],
        price: Optional[float],
        category: Optional[ProductCategory],
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        available: bool = True,
    ) -> Product:
        if self._database.get_restaurant(restaurant_id) is None:
            raise ValueError(f"Restaurante no encontrado con ID: {restaurant_id}")
        if category is None:
            raise ValueError("La categoría es obligatoria")

        product = self._database.save_product(
            Product(
                restaurant_id=restaurant_id,
                name=_validate_name(name),
                price=_validate_price(price),
                category=category,
                description=_validate_description(description),
                image_url=(image_url or "").strip() or None,
                available=available,
            )
        )
        logger.info("Created product %s in restaurant %s", product.id, restaurant_id)
        return product

    def get_product(self, restaurant_id: int, product_id: int) -> Optional[Product]:
        product = self._database.get_product(product_id)
        if product is None or product.restaurant_id != restaurant_id:
            return None
        return product

    def list_products(
        self,
        restaurant_id: int,
        *,
        available_only: bool = False,
        category: Optional[ProductCategory] = None,
    ) -> List[Product]:
        return self._database.list_products(
            restaurant_id,
            category=category,
            available=True if available_only else None,
        )

    def update_product(
        self,
        restaurant_id: int,
        product_id: int,
        *,
        name: Optional[str] = None,
        price: Optional[float] = None,
        category: Optional[ProductCategory] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        available: Optional[bool] = None,
    ) -> Optional[Product]:
        """Apply the supplied fields; ``None`` leaves a field unchanged."""

        existing = self.get_product(restaurant_id, product_id)
        if existing is None:
            return None

        changes = {}
        if name is not None:
            changes["name"] = _validate_name(name)
        if price is not None:
            changes["price"] = _validate_price(price)
        if category is not None:
            changes["category"] = category
        if description is not None:
            changes["description"] = _validate_description(description)
        if image_url is not None:
            changes["image_url"] = image_url.strip() or None
        if available is not None:
            changes["available"] = available

        if not changes:
            return existing
        return self._database.save_product(replace(existing, **changes))

    def delete_product(self, restaurant_id: int, product_id: int) -> bool:
        if self.get_product(restaurant_id, product_id) is None:
            return False
        return self._database.delete_product(product_id)


__all__ = ["ProductService"]
