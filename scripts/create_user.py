import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from comanda.config import load_bcrypt_rounds, load_database_path
from comanda.database import Database, resolve_database_path
from comanda.models import UserRole
from comanda.passwords import PasswordHasher
from comanda.users import PASSWORD_MIN_LENGTH, UserService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Add a staff account to an existing restaurant")
    parser.add_argument("restaurant", help="Name of the restaurant the account belongs to")
    parser.add_argument("name", help="Full name of the staff member")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--role",
        default=UserRole.MESERO.value,
        choices=[role.value for role in UserRole],
        help="Role granted to the account (default: MESERO)",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to COMANDA_DB_PATH, the COMANDA_CONFIG file or data/comanda.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < PASSWORD_MIN_LENGTH:
            print(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()

    db_path = resolve_database_path(args.db_path) if args.db_path else load_database_path()
    database = Database(db_path)
    database.initialize()

    restaurant = database.find_restaurant_by_name(args.restaurant.strip())
    if restaurant is None:
        print(f"Error: no restaurant named {args.restaurant!r}", file=sys.stderr)
        return 1

    password = prompt_for_password()
    service = UserService(database, PasswordHasher(rounds=load_bcrypt_rounds()))

    try:
        user = service.create_user(
            restaurant.id,
            full_name=args.name,
            email=args.email,
            password=password,
            role=UserRole.parse(args.role),
        )
    except ValueError as exc:  # duplicates, validation
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created {user.role.value} #{user.id}: {user.full_name} <{user.email}> in {restaurant.name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
