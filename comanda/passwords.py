"""bcrypt password hashing for staff accounts."""
from __future__ import annotations

import bcrypt

# bcrypt only consumes the first 72 bytes of its input and rejects longer secrets.
MAX_PASSWORD_BYTES = 72
DEFAULT_ROUNDS = 12


class PasswordHasher:
    """Hash and verify passwords using salted bcrypt digests."""

    def __init__(self, *, rounds: int = DEFAULT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes")
        digest = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds))
        return digest.decode("ascii")

    def matches(self, password: str, hashed: str) -> bool:
        """Return ``True`` if ``password`` produces ``hashed``.

        Malformed digests and over-long passwords never match.
        """

        if not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


__all__ = ["DEFAULT_ROUNDS", "MAX_PASSWORD_BYTES", "PasswordHasher", "password_too_long"]
