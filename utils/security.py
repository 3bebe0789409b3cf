"""
Password hashing helpers (bcrypt).

Hashes are salted per password and cost-tunable; the default cost factor
is 12. bcrypt releases the GIL while hashing, so requests served by other
threads keep running while one login is being checked.
"""
from __future__ import annotations

from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 12
# bcrypt input limit; bcrypt>=5 raises instead of silently truncating
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a plaintext password using bcrypt.

    Raises ValueError for passwords over MAX_PASSWORD_BYTES once UTF-8 encoded;
    callers validate length first so this never reaches a request.
    """
    if password_too_long(password):
        raise ValueError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored bcrypt hash.

    A malformed hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    return hash_password("timing-equalization-dummy", rounds=rounds)


def burn_password_check(password: str, rounds: int = DEFAULT_ROUNDS) -> None:
    """Run one bcrypt comparison against a throwaway hash.

    Called when the email is unknown so the response takes as long as a
    wrong-password response does.
    """
    verify_password(password, _dummy_hash(rounds))
