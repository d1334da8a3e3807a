from __future__ import annotations

from pathlib import Path

import pytest

from comanda.config import load_bcrypt_rounds, load_database_path, load_settings

SECRET = "config-test-signing-secret-0123456789abcd"


def test_environment_only_configuration(tmp_path: Path) -> None:
    settings = load_settings(
        environ={
            "COMANDA_JWT_SECRET": SECRET,
            "COMANDA_DB_PATH": str(tmp_path / "db.sqlite3"),
            "COMANDA_BCRYPT_ROUNDS": "5",
            "COMANDA_CORS_ORIGINS": "http://localhost:3000, https://comanda.example",
        }
    )

    assert settings.jwt_secret == SECRET
    assert settings.jwt_algorithm == "HS256"
    assert settings.database_path == (tmp_path / "db.sqlite3").resolve()
    assert settings.bcrypt_rounds == 5
    assert settings.cors_origins == ("http://localhost:3000", "https://comanda.example")


def test_yaml_file_with_environment_override(tmp_path: Path) -> None:
    config_path = tmp_path / "comanda.yaml"
    config_path.write_text(
        "\n".join(
            [
                f"jwt_secret: {SECRET}",
                "jwt_algorithm: hs512",
                "database_path: data/app.sqlite3",
                "cors_origins:",
                "  - http://localhost:5173",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(config_path, environ={"COMANDA_JWT_ALGORITHM": "HS384"})

    assert settings.jwt_algorithm == "HS384"
    assert settings.database_path == (tmp_path / "data" / "app.sqlite3").resolve()
    assert settings.cors_origins == ("http://localhost:5173",)


def test_config_path_from_environment(tmp_path: Path) -> None:
    config_path = tmp_path / "comanda.yaml"
    config_path.write_text(f"jwt_secret: {SECRET}\n", encoding="utf-8")

    settings = load_settings(environ={"COMANDA_CONFIG": str(config_path)})

    assert settings.jwt_secret == SECRET
    assert settings.bcrypt_rounds == 12


def test_missing_secret_is_fatal() -> None:
    with pytest.raises(RuntimeError, match="COMANDA_JWT_SECRET"):
        load_settings(environ={})


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "comanda.yaml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings(config_path, environ={})


def test_database_path_and_rounds_resolve_without_secret(tmp_path: Path) -> None:
    config_path = tmp_path / "comanda.yaml"
    config_path.write_text("database_path: local.sqlite3\nbcrypt_rounds: 6\n", encoding="utf-8")

    assert load_database_path(config_path, environ={}) == (tmp_path / "local.sqlite3").resolve()
    assert load_bcrypt_rounds(config_path, environ={}) == 6
    assert load_bcrypt_rounds(environ={"COMANDA_BCRYPT_ROUNDS": "8"}) == 8
