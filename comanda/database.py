"""SQLite-backed persistence for restaurants, staff accounts and products."""
from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .models import Product, ProductCategory, Restaurant, User, UserRole


class DuplicateRecordError(ValueError):
    """Raised when a write violates a uniqueness constraint."""

    def __init__(self, message: str, *, field: str) -> None:
        super().__init__(message)
        self.field = field


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "comanda.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Database:
    """Simple wrapper around SQLite for persisting restaurants, users and products."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path
        self._local = threading.local()

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        active = getattr(self._local, "connection", None)
        if active is not None:
            yield active
            return

        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run every store call made by this thread inside one commit.

        Nested calls join the outer transaction. Any exception rolls back all
        writes performed inside the block.
        """

        if getattr(self._local, "connection", None) is not None:
            yield
            return

        conn = self._connect()
        self._local.connection = conn
        try:
            with conn:
                yield
        finally:
            self._local.connection = None
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS restaurants (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    email TEXT UNIQUE,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    restaurant_id INTEGER NOT NULL REFERENCES restaurants(id) ON DELETE CASCADE,
                    full_name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    role TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS products (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    restaurant_id INTEGER NOT NULL REFERENCES restaurants(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    description TEXT,
                    price REAL NOT NULL,
                    category TEXT NOT NULL,
                    image_url TEXT,
                    available INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_restaurant_id ON users(restaurant_id);
                CREATE INDEX IF NOT EXISTS idx_products_restaurant_id ON products(restaurant_id);
                """
            )

    # ------------------------------------------------------------------
    # Restaurant management
    # ------------------------------------------------------------------
    def save_restaurant(self, restaurant: Restaurant) -> Restaurant:
        """Insert a new restaurant, or update it when it already has an id."""

        email = normalize_email(restaurant.email) if restaurant.email else None
        with self._connection() as conn:
            try:
                if restaurant.id is None:
                    created_at = restaurant.created_at or _current_timestamp()
                    cursor = conn.execute(
                        "INSERT INTO restaurants (name, email, active, created_at) VALUES (?, ?, ?, ?)",
                        (
                            restaurant.name,
                            email,
                            int(bool(restaurant.active)),
                            _serialize_datetime(created_at),
                        ),
                    )
                    return replace(restaurant, id=cursor.lastrowid, email=email, created_at=created_at)

                conn.execute(
                    "UPDATE restaurants SET name = ?, email = ?, active = ? WHERE id = ?",
                    (restaurant.name, email, int(bool(restaurant.active)), restaurant.id),
                )
            except sqlite3.IntegrityError as exc:
                field = "email" if "restaurants.email" in str(exc) else "name"
                raise DuplicateRecordError(
                    f"A restaurant with that {field} already exists", field=field
                ) from exc
        return replace(restaurant, email=email)

    def get_restaurant(self, restaurant_id: int) -> Optional[Restaurant]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM restaurants WHERE id = ?", (restaurant_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_restaurant(row)

    def find_restaurant_by_name(self, name: str) -> Optional[Restaurant]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM restaurants WHERE name = ?", (name,)).fetchone()
        if row is None:
            return None
        return self._row_to_restaurant(row)

    def restaurant_exists_by_name(self, name: str) -> bool:
        return self.find_restaurant_by_name(name) is not None

    def list_restaurants(self, *, active: Optional[bool] = None) -> List[Restaurant]:
        query = "SELECT * FROM restaurants"
        params: List[object] = []
        if active is not None:
            query += " WHERE active = ?"
            params.append(int(active))
        query += " ORDER BY name"
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_restaurant(row) for row in rows]

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def save_user(self, user: User) -> User:
        """Insert a new user, or update it when it already has an id."""

        email = normalize_email(user.email)
        with self._connection() as conn:
            try:
                if user.id is None:
                    created_at = user.created_at or _current_timestamp()
                    cursor = conn.execute(
                        """
                        INSERT INTO users (
                            restaurant_id, full_name, email, password_hash, role, active, created_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            user.restaurant_id,
                            user.full_name,
                            email,
                            user.password_hash,
                            user.role.value,
                            int(bool(user.active)),
                            _serialize_datetime(created_at),
                        ),
                    )
                    return replace(user, id=cursor.lastrowid, email=email, created_at=created_at)

                conn.execute(
                    """
                    UPDATE users
                       SET full_name = ?, email = ?, password_hash = ?, role = ?, active = ?
                     WHERE id = ?
                    """,
                    (
                        user.full_name,
                        email,
                        user.password_hash,
                        user.role.value,
                        int(bool(user.active)),
                        user.id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if "users.email" in str(exc):
                    raise DuplicateRecordError("A user with that email already exists", field="email") from exc
                raise ValueError(f"Cannot store user for restaurant {user.restaurant_id}: {exc}") from exc
        return replace(user, email=email)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def user_exists_by_email(self, email: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM users WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        return row is not None

    def list_users(
        self,
        restaurant_id: int,
        *,
        role: Optional[UserRole] = None,
        active: Optional[bool] = None,
    ) -> List[User]:
        query = "SELECT * FROM users WHERE restaurant_id = ?"
        params: List[object] = [restaurant_id]
        if role is not None:
            query += " AND role = ?"
            params.append(role.value)
        if active is not None:
            query += " AND active = ?"
            params.append(int(active))
        query += " ORDER BY full_name, id"
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_user(row) for row in rows]

    def count_users(self, restaurant_id: int, *, active: Optional[bool] = None) -> int:
        query = "SELECT COUNT(*) FROM users WHERE restaurant_id = ?"
        params: List[object] = [restaurant_id]
        if active is not None:
            query += " AND active = ?"
            params.append(int(active))
        with self._connection() as conn:
            (count,) = conn.execute(query, params).fetchone()
        return int(count)

    def delete_user(self, user_id: int) -> bool:
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Product management
    # ------------------------------------------------------------------
    def save_product(self, product: Product) -> Product:
        with self._connection() as conn:
            if product.id is None:
                created_at = product.created_at or _current_timestamp()
                cursor = conn.execute(
                    """
                    INSERT INTO products (
                        restaurant_id, name, description, price, category, image_url, available, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        product.restaurant_id,
                        product.name,
                        product.description,
                        float(product.price),
                        product.category.value,
                        product.image_url,
                        int(bool(product.available)),
                        _serialize_datetime(created_at),
                    ),
                )
                return replace(product, id=cursor.lastrowid, created_at=created_at)

            conn.execute(
                """
                UPDATE products
                   SET name = ?, description = ?, price = ?, category = ?, image_url = ?, available = ?
                 WHERE id = ?
                """,
                (
                    product.name,
                    product.description,
                    float(product.price),
                    product.category.value,
                    product.image_url,
                    int(bool(product.available)),
                    product.id,
                ),
            )
        return product

    def get_product(self, product_id: int) -> Optional[Product]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_product(row)

    def list_products(
        self,
        restaurant_id: int,
        *,
        category: Optional[ProductCategory] = None,
        available: Optional[bool] = None,
    ) -> List[Product]:
        query = "SELECT * FROM products WHERE restaurant_id = ?"
        params: List[object] = [restaurant_id]
        if category is not None:
            query += " AND category = ?"
            params.append(category.value)
        if available is not None:
            query += " AND available = ?"
            params.append(int(available))
        query += " ORDER BY category, name, id"
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_product(row) for row in rows]

    def delete_product(self, product_id: int) -> bool:
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM products WHERE id = ?", (product_id,))
            return cursor.rowcount > 0

    def count_rows(self) -> Dict[str, int]:
        """Return the number of stored rows per table."""

        counts: Dict[str, int] = {}
        with self._connection() as conn:
            for table in ("restaurants", "users", "products"):
                (count,) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
                counts[table] = int(count)
        return counts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_restaurant(self, row: sqlite3.Row) -> Restaurant:
        return Restaurant(
            id=int(row["id"]),
            name=str(row["name"]),
            email=row["email"],
            active=bool(row["active"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            restaurant_id=int(row["restaurant_id"]),
            full_name=str(row["full_name"]),
            email=str(row["email"]),
            password_hash=str(row["password_hash"]),
            role=UserRole(str(row["role"])),
            active=bool(row["active"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_product(self, row: sqlite3.Row) -> Product:
        return Product(
            id=int(row["id"]),
            restaurant_id=int(row["restaurant_id"]),
            name=str(row["name"]),
            description=row["description"],
            price=float(row["price"]),
            category=ProductCategory(str(row["category"])),
            image_url=row["image_url"],
            available=bool(row["available"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database", "DuplicateRecordError", "normalize_email", "resolve_database_path"]
