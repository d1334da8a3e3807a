from __future__ import annotations

from pathlib import Path

import pytest

from comanda.database import Database
from comanda.models import Restaurant, UserRole
from comanda.passwords import PasswordHasher
from comanda.users import UserService


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "comanda.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture()
def service(database: Database, hasher: PasswordHasher) -> UserService:
    return UserService(database, hasher)


@pytest.fixture()
def restaurant_id(database: Database) -> int:
    return database.save_restaurant(Restaurant(name="La Mesa")).id


@pytest.fixture()
def other_restaurant_id(database: Database) -> int:
    return database.save_restaurant(Restaurant(name="El Fogón")).id


def test_create_user_hashes_password(
    service: UserService, hasher: PasswordHasher, restaurant_id: int
) -> None:
    user = service.create_user(
        restaurant_id,
        full_name=" Luis Gómez ",
        email="Luis@X.com",
        password="mesero1",
        role=UserRole.MESERO,
    )

    assert user.id is not None
    assert user.full_name == "Luis Gómez"
    assert user.email == "luis@x.com"
    assert hasher.matches("mesero1", user.password_hash)
    assert service.email_exists("LUIS@x.com")


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"full_name": "L"}, "El nombre completo debe tener entre 2 y 100 caracteres"),
        ({"email": "no-at-sign"}, "El formato del email no es válido"),
        ({"password": "12345"}, "La contraseña debe tener entre 6 caracteres y 72 bytes"),
        ({"password": "x" * 73}, "La contraseña debe tener entre 6 caracteres y 72 bytes"),
        ({"role": None}, "El rol es obligatorio"),
    ],
)
def test_create_user_validates_input(
    service: UserService, restaurant_id: int, overrides: dict, message: str
) -> None:
    fields = {
        "full_name": "Luis Gómez",
        "email": "luis@x.com",
        "password": "mesero1",
        "role": UserRole.MESERO,
        **overrides,
    }

    with pytest.raises(ValueError, match=message):
        service.create_user(restaurant_id, **fields)


def test_create_user_rejects_unknown_restaurant(service: UserService) -> None:
    with pytest.raises(ValueError, match="Restaurante no encontrado con ID: 999"):
        service.create_user(
            999, full_name="Luis Gómez", email="luis@x.com", password="mesero1", role=UserRole.MESERO
        )


def test_email_is_unique_across_restaurants(
    service: UserService, restaurant_id: int, other_restaurant_id: int
) -> None:
    service.create_user(
        restaurant_id, full_name="Luis Gómez", email="luis@x.com", password="mesero1", role=UserRole.MESERO
    )

    with pytest.raises(ValueError, match="Ya existe un usuario con el email"):
        service.create_user(
            other_restaurant_id,
            full_name="Luis Otro",
            email="luis@x.com",
            password="mesero1",
            role=UserRole.COCINERO,
        )


def test_accounts_of_another_restaurant_are_invisible(
    service: UserService, restaurant_id: int, other_restaurant_id: int
) -> None:
    user = service.create_user(
        restaurant_id, full_name="Luis Gómez", email="luis@x.com", password="mesero1", role=UserRole.MESERO
    )

    assert service.get_user(other_restaurant_id, user.id) is None
    assert service.get_user_by_email(other_restaurant_id, "luis@x.com") is None
    assert service.update_user(other_restaurant_id, user.id, full_name="Hacker") is None
    assert service.delete_user(other_restaurant_id, user.id) is False
    assert service.get_user(restaurant_id, user.id) == user


def test_list_by_role_and_count(service: UserService, restaurant_id: int) -> None:
    service.create_user(
        restaurant_id, full_name="Luis Gómez", email="luis@x.com", password="mesero1", role=UserRole.MESERO
    )
    cook = service.create_user(
        restaurant_id, full_name="Marta Díaz", email="marta@x.com", password="cocina1", role=UserRole.COCINERO
    )
    service.set_active(restaurant_id, cook.id, False)

    assert [u.full_name for u in service.list_users_by_role(restaurant_id, "cocinero")] == ["Marta Díaz"]
    assert [u.full_name for u in service.list_users(restaurant_id, active_only=True)] == ["Luis Gómez"]
    assert service.count_users(restaurant_id) == 2
    assert service.count_users(restaurant_id, active_only=True) == 1

    with pytest.raises(ValueError, match="Rol no válido"):
        service.list_users_by_role(restaurant_id, "CHEF")


def test_update_user_applies_partial_changes(
    service: UserService, hasher: PasswordHasher, restaurant_id: int
) -> None:
    user = service.create_user(
        restaurant_id, full_name="Luis Gómez", email="luis@x.com", password="mesero1", role=UserRole.MESERO
    )

    updated = service.update_user(restaurant_id, user.id, role=UserRole.COCINERO, password="nuevaclave")

    assert updated.full_name == "Luis Gómez"
    assert updated.role is UserRole.COCINERO
    assert hasher.matches("nuevaclave", updated.password_hash)
    assert service.get_user(restaurant_id, user.id) == updated


def test_update_user_rejects_email_of_another_account(service: UserService, restaurant_id: int) -> None:
    service.create_user(
        restaurant_id, full_name="Luis Gómez", email="luis@x.com", password="mesero1", role=UserRole.MESERO
    )
    marta = service.create_user(
        restaurant_id, full_name="Marta Díaz", email="marta@x.com", password="cocina1", role=UserRole.COCINERO
    )

    with pytest.raises(ValueError, match="Ya existe un usuario con el email"):
        service.update_user(restaurant_id, marta.id, email="luis@x.com")

    # Re-submitting the account's own email is not a conflict.
    assert service.update_user(restaurant_id, marta.id, email="MARTA@x.com").email == "marta@x.com"


def test_delete_user(service: UserService, restaurant_id: int) -> None:
    user = service.create_user(
        restaurant_id, full_name="Luis Gómez", email="luis@x.com", password="mesero1", role=UserRole.MESERO
    )

    assert service.delete_user(restaurant_id, user.id) is True
    assert service.get_user(restaurant_id, user.id) is None
    assert not service.email_exists("luis@x.com")
