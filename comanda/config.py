"""Configuration management for the restaurant service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path
from .passwords import DEFAULT_ROUNDS
from .tokens import DEFAULT_ALGORITHM

_ENV_OVERRIDES = {
    "COMANDA_DB_PATH": "database_path",
    "COMANDA_JWT_SECRET": "jwt_secret",
    "COMANDA_JWT_ALGORITHM": "jwt_algorithm",
    "COMANDA_BCRYPT_ROUNDS": "bcrypt_rounds",
    "COMANDA_CORS_ORIGINS": "cors_origins",
}


def _database_path(data: Mapping[str, object], base_path: Path | None) -> Path:
    raw_db_path = data.get("database_path")
    if not raw_db_path:
        return resolve_database_path(None)
    candidate = Path(str(raw_db_path)).expanduser()
    if not candidate.is_absolute() and base_path is not None:
        candidate = base_path / candidate
    return candidate.resolve(strict=False)


def _bcrypt_rounds(data: Mapping[str, object]) -> int:
    try:
        return int(data.get("bcrypt_rounds") or DEFAULT_ROUNDS)
    except (TypeError, ValueError) as exc:
        raise ValueError("bcrypt_rounds must be an integer") from exc


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API process."""

    database_path: Path
    jwt_secret: str
    jwt_algorithm: str = DEFAULT_ALGORITHM
    bcrypt_rounds: int = DEFAULT_ROUNDS
    cors_origins: Tuple[str, ...] = ()

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw configuration values."""

        secret = str(data.get("jwt_secret") or "").strip()
        if not secret:
            raise RuntimeError("COMANDA_JWT_SECRET must be configured to sign session tokens")

        origins = data.get("cors_origins") or ()
        if isinstance(origins, str):
            origins = [item.strip() for item in origins.split(",")]

        return Settings(
            database_path=_database_path(data, base_path),
            jwt_secret=secret,
            jwt_algorithm=str(data.get("jwt_algorithm") or DEFAULT_ALGORITHM).upper(),
            bcrypt_rounds=_bcrypt_rounds(data),
            cors_origins=tuple(str(origin) for origin in origins if str(origin).strip()),
        )


def _load_raw(
    config_path: Optional[Path],
    environ: Optional[Mapping[str, str]],
) -> Tuple[Dict[str, object], Path | None]:
    env = os.environ if environ is None else environ
    if config_path is None and env.get("COMANDA_CONFIG"):
        config_path = Path(env["COMANDA_CONFIG"]).expanduser()

    raw: Dict[str, object] = {}
    base_path: Path | None = None
    if config_path is not None:
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")
        raw.update(loaded)
        base_path = config_path.resolve(strict=False).parent

    for variable, key in _ENV_OVERRIDES.items():
        value = env.get(variable)
        if not value:
            continue
        if key == "database_path":
            value = str(resolve_database_path(value))
        raw[key] = value

    return raw, base_path


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides."""

    raw, base_path = _load_raw(config_path, environ)
    return Settings.from_dict(raw, base_path=base_path)


def load_database_path(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Resolve only the database location; no signing secret is required."""

    raw, base_path = _load_raw(config_path, environ)
    return _database_path(raw, base_path)


def load_bcrypt_rounds(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    raw, _ = _load_raw(config_path, environ)
    return _bcrypt_rounds(raw)


__all__ = ["Settings", "load_bcrypt_rounds", "load_database_path", "load_settings"]
