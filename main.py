"""Command-line interface for the Comanda restaurant service."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from pathlib import Path
from typing import Sequence

from comanda.auth import AuthError, AuthService
from comanda.config import Settings, load_database_path, load_settings
from comanda.database import Database
from comanda.passwords import PasswordHasher, password_too_long
from comanda.tokens import TokenCodec

logger = logging.getLogger("comanda.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Comanda restaurant service utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: $COMANDA_CONFIG)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the restaurant database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the HTTP API (default: 8080)",
    )
    serve_parser.add_argument(
        "--ssl-certfile",
        default=None,
        help="Path to the TLS certificate chain in PEM format",
    )
    serve_parser.add_argument(
        "--ssl-keyfile",
        default=None,
        help="Path to the TLS private key in PEM format",
    )

    subparsers.add_parser(
        "register",
        help="Interactively register a restaurant and its administrator account",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "register"}

    global_args: list[str] = []
    if len(args_list) >= 2 and args_list[0] == "--config":
        global_args, args_list = args_list[:2], args_list[2:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args([*global_args, *args_list])
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args([*global_args, *args_list])
            args_list = ["serve", *args_list]

    return parser.parse_args([*global_args, *args_list])


def _config_path(config: str | None) -> Path | None:
    return Path(config).expanduser() if config else None


def _load_settings(config: str | None) -> Settings:
    return load_settings(_config_path(config))


def _initialise_database(db_path: Path) -> Database:
    database = Database(db_path)
    database.initialize()
    logger.info("Database initialised at %s", db_path)
    return database


def _serve(
    *,
    settings: Settings,
    database: Database,
    host: str,
    port: int,
    ssl_certfile: str | None,
    ssl_keyfile: str | None,
) -> None:
    from comanda.api import create_app
    import uvicorn

    if bool(ssl_certfile) ^ bool(ssl_keyfile):
        raise SystemExit("Both --ssl-certfile and --ssl-keyfile must be provided together.")

    protocol = "https" if ssl_certfile and ssl_keyfile else "http"
    logger.info("Starting restaurant API on %s://%s:%s", protocol, host, port)

    app = create_app(settings=settings, database=database)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        ssl_certfile=ssl_certfile,
        ssl_keyfile=ssl_keyfile,
    )


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass("Password: ")
        if not password.strip():
            print("Password cannot be empty. Please try again.")
            continue
        if password_too_long(password):
            print("Password must not exceed 72 bytes. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _register_restaurant(settings: Settings, database: Database) -> int:
    print("\nRegister a new restaurant (leave the restaurant name blank to cancel).")
    restaurant_name = input("Restaurant name: ").strip()
    if not restaurant_name:
        print("Registration cancelled.")
        return 1

    full_name = input("Administrator full name: ").strip()
    email = input("Administrator email: ").strip()

    password = _prompt_for_password()
    if password is None:
        print("Aborted registration.")
        return 1

    service = AuthService(
        database,
        database,
        PasswordHasher(rounds=settings.bcrypt_rounds),
        TokenCodec(settings.jwt_secret, algorithm=settings.jwt_algorithm),
        transaction=database.transaction,
    )
    try:
        message = service.register(full_name, restaurant_name, email, password)
    except AuthError as exc:
        print(f"Registration failed: {exc.message}")
        return 1

    print(message)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "init-db":
        database = _initialise_database(load_database_path(_config_path(args.config)))
        counts = ", ".join(f"{table}={count}" for table, count in database.count_rows().items())
        print(f"Database initialisation complete ({counts}).")
        return 0

    settings = _load_settings(args.config)
    database = _initialise_database(settings.database_path)

    if args.command == "serve":
        _serve(
            settings=settings,
            database=database,
            host=args.host,
            port=args.port,
            ssl_certfile=args.ssl_certfile,
            ssl_keyfile=args.ssl_keyfile,
        )
    elif args.command == "register":
        return _register_restaurant(settings, database)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
