from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from comanda.database import Database, DuplicateRecordError, resolve_database_path
from comanda.models import Product, ProductCategory, Restaurant, User, UserRole


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "comanda.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def _user(restaurant_id: int, email: str, role: UserRole = UserRole.MESERO) -> User:
    return User(
        restaurant_id=restaurant_id,
        full_name="Staff Member",
        email=email,
        password_hash="$2b$04$placeholder",
        role=role,
    )


def test_save_and_find_restaurant(database: Database) -> None:
    restaurant = database.save_restaurant(Restaurant(name="La Mesa"))

    assert restaurant.id is not None
    assert restaurant.created_at is not None
    assert database.get_restaurant(restaurant.id) == restaurant
    assert database.find_restaurant_by_name("La Mesa") == restaurant
    assert database.restaurant_exists_by_name("La Mesa")
    assert not database.restaurant_exists_by_name("El Fogón")


def test_restaurant_name_is_unique(database: Database) -> None:
    database.save_restaurant(Restaurant(name="La Mesa"))

    with pytest.raises(DuplicateRecordError) as excinfo:
        database.save_restaurant(Restaurant(name="La Mesa"))
    assert excinfo.value.field == "name"


def test_restaurant_email_is_unique(database: Database) -> None:
    database.save_restaurant(Restaurant(name="La Mesa", email="info@lamesa.com"))

    with pytest.raises(DuplicateRecordError) as excinfo:
        database.save_restaurant(Restaurant(name="El Fogón", email="INFO@lamesa.com"))
    assert excinfo.value.field == "email"


def test_list_restaurants_filters_on_active(database: Database) -> None:
    database.save_restaurant(Restaurant(name="La Mesa"))
    closed = database.save_restaurant(Restaurant(name="Cerrado"))
    database.save_restaurant(replace(closed, active=False))

    assert [r.name for r in database.list_restaurants()] == ["Cerrado", "La Mesa"]
    assert [r.name for r in database.list_restaurants(active=True)] == ["La Mesa"]


def test_user_email_is_normalised_and_unique(database: Database) -> None:
    restaurant = database.save_restaurant(Restaurant(name="La Mesa"))
    other = database.save_restaurant(Restaurant(name="El Fogón"))

    user = database.save_user(_user(restaurant.id, "  Ana@X.com "))
    assert user.email == "ana@x.com"
    assert database.find_user_by_email("ANA@x.com") == user
    assert database.user_exists_by_email("ana@X.COM")

    with pytest.raises(DuplicateRecordError) as excinfo:
        database.save_user(_user(other.id, "ana@x.com"))
    assert excinfo.value.field == "email"


def test_list_and_count_users_are_scoped_to_restaurant(database: Database) -> None:
    restaurant = database.save_restaurant(Restaurant(name="La Mesa"))
    other = database.save_restaurant(Restaurant(name="El Fogón"))
    database.save_user(_user(restaurant.id, "admin@x.com", UserRole.ADMIN))
    cook = database.save_user(_user(restaurant.id, "cook@x.com", UserRole.COCINERO))
    database.save_user(_user(other.id, "waiter@y.com"))
    database.save_user(replace(cook, active=False))

    assert len(database.list_users(restaurant.id)) == 2
    assert [u.email for u in database.list_users(restaurant.id, role=UserRole.COCINERO)] == ["cook@x.com"]
    assert [u.email for u in database.list_users(restaurant.id, active=True)] == ["admin@x.com"]
    assert database.count_users(restaurant.id) == 2
    assert database.count_users(restaurant.id, active=True) == 1
    assert database.count_users(other.id) == 1


def test_delete_user(database: Database) -> None:
    restaurant = database.save_restaurant(Restaurant(name="La Mesa"))
    user = database.save_user(_user(restaurant.id, "ana@x.com"))

    assert database.delete_user(user.id) is True
    assert database.get_user(user.id) is None
    assert database.delete_user(user.id) is False


def test_transaction_rolls_back_every_write(database: Database) -> None:
    with pytest.raises(DuplicateRecordError):
        with database.transaction():
            restaurant = database.save_restaurant(Restaurant(name="La Mesa"))
            database.save_user(_user(restaurant.id, "ana@x.com"))
            database.save_user(_user(restaurant.id, "ana@x.com"))

    assert database.count_rows() == {"restaurants": 0, "users": 0, "products": 0}


def test_transaction_commits_on_success(database: Database) -> None:
    with database.transaction():
        restaurant = database.save_restaurant(Restaurant(name="La Mesa"))
        database.save_user(_user(restaurant.id, "ana@x.com"))

    assert database.count_rows()["users"] == 1


def test_products_round_trip_and_filter(database: Database) -> None:
    restaurant = database.save_restaurant(Restaurant(name="La Mesa"))
    soup = database.save_product(
        Product(restaurant_id=restaurant.id, name="Sopa", price=8.5, category=ProductCategory.ENTRADAS)
    )
    database.save_product(
        Product(
            restaurant_id=restaurant.id,
            name="Flan",
            price=4.0,
            category=ProductCategory.POSTRES,
            available=False,
        )
    )

    assert database.get_product(soup.id) == soup
    assert [p.name for p in database.list_products(restaurant.id)] == ["Sopa", "Flan"]
    assert [p.name for p in database.list_products(restaurant.id, available=True)] == ["Sopa"]
    assert [p.name for p in database.list_products(restaurant.id, category=ProductCategory.POSTRES)] == ["Flan"]

    database.save_product(replace(soup, price=9.0))
    assert database.get_product(soup.id).price == 9.0

    assert database.delete_product(soup.id) is True
    assert database.get_product(soup.id) is None


def test_resolve_database_path_prefers_explicit_value(tmp_path: Path) -> None:
    explicit = tmp_path / "custom.sqlite3"
    assert resolve_database_path(str(explicit)) == explicit.resolve()
    assert resolve_database_path(None).name == "comanda.sqlite3"


def test_user_for_unknown_restaurant_is_not_reported_as_duplicate(database: Database) -> None:
    with pytest.raises(ValueError) as excinfo:
        database.save_user(_user(999, "ana@x.com"))

    assert not isinstance(excinfo.value, DuplicateRecordError)
    assert database.count_rows()["users"] == 0
