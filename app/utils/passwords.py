import re
import secrets
import string
from typing import List

import bcrypt

from app.config.settings import settings

_SPECIALS = "!@#$%^&*"
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    # bcrypt only looks at the first 72 bytes and newer releases refuse longer input
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted adaptive hashing with a configurable bcrypt cost."""

    def __init__(self, rounds: int | None = None):
        self.rounds = rounds or settings.BCRYPT_ROUNDS

    def hash(self, plain: str) -> str:
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode()

    def verify(self, plain: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(_encode(plain), digest.encode())
        except ValueError:
            # unparseable stored hash never authenticates
            return False


def generate_temporary_password(length: int = 12) -> str:
    """Random password with at least one upper, lower, digit and special character."""
    if length < 4:
        raise ValueError("Temporary password length must be at least 4")
    alphabet = string.ascii_letters + string.digits + _SPECIALS
    chars = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(_SPECIALS),
    ]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def password_policy_errors(password: str) -> List[str]:
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not re.search(r"[!@#$%^&*]", password):
        errors.append("Password must contain at least one special character (!@#$%^&*)")
    return errors
