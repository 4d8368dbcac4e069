"""
Password hashing with bcrypt.
"""
from typing import Optional

import bcrypt

from wakeup.auth.errors import PasswordMismatch

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Salted one-way hashing and verification of plaintext passwords."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Generate a salted bcrypt hash for ``password``."""
        return bcrypt.hashpw(
            password.encode("utf-8"),
            bcrypt.gensalt(rounds=self.rounds),
        ).decode("utf-8")

    def verify(self, password_hash: Optional[str], password: str) -> bool:
        """
        Check a plaintext password against a stored hash.

        Returns:
            True when they correspond

        Raises:
            PasswordMismatch: When they don't, when there is no stored hash,
                or when the stored value is not a bcrypt hash
        """
        if not password_hash:
            raise PasswordMismatch("no password hash stored")
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            raise PasswordMismatch("password longer than bcrypt input limit")
        try:
            matches = bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except ValueError as e:
            raise PasswordMismatch(f"unusable password hash: {e}") from e
        if not matches:
            raise PasswordMismatch("password does not match")
        return True
