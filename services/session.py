"""
Session service: registration, login, refresh, logout and logout-all.

Token policy:
- Every register/login mints a fresh access token and a fresh refresh token
  and stores the refresh token with its expiry.
- refresh() needs both a valid signature and a live database row; deleting
  the row revokes the token even though it still verifies.
- refresh() mints a new access token only. The refresh token is not rotated
  and stays usable until it expires or is logged out.
- Access tokens are never looked up, so after logout-all they keep working
  until their own (short) expiry.
"""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Optional

from models.base_model import as_utc
from models.db_storage import DBStorage, DuplicateEmail
from models.user import User
from services.errors import ErrorKind, ServiceError
from utils.security import (
    DEFAULT_ROUNDS,
    MAX_PASSWORD_BYTES,
    burn_password_check,
    hash_password,
    password_too_long,
    verify_password,
)
from utils.tokens import InvalidToken, TokenCodec, generate_token_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedSession:
    user: User
    access_token: str
    refresh_token: str


def _boundary(fn):
    """Let ServiceError through; log anything else and raise INTERNAL_ERROR."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ServiceError:
            raise
        except Exception as exc:
            logger.exception("%s failed", fn.__name__)
            raise ServiceError(ErrorKind.INTERNAL_ERROR) from exc

    return wrapper


class SessionService:
    """Combines the credential store and the token codec.

    Holds no per-request state; one instance serves the whole process.
    """

    def __init__(self, storage: DBStorage, codec: TokenCodec, bcrypt_rounds: int = DEFAULT_ROUNDS):
        self.storage = storage
        self.codec = codec
        self.bcrypt_rounds = bcrypt_rounds

    @staticmethod
    def _require_credentials(email: Optional[str], password: Optional[str]) -> None:
        if not email or not password:
            raise ServiceError(ErrorKind.VALIDATION_ERROR)

    def _issue(self, user: User) -> IssuedSession:
        access_token = self.codec.mint_access_token(user.id, user.email)
        refresh_token = self.codec.mint_refresh_token(user.id, generate_token_id())
        self.storage.create_refresh_token(refresh_token, user.id, self.codec.refresh_expiry())
        return IssuedSession(user=user, access_token=access_token, refresh_token=refresh_token)

    @_boundary
    def register(self, email: str, password: str, first_name: Optional[str] = None,
                 last_name: Optional[str] = None) -> IssuedSession:
        self._require_credentials(email, password)
        if password_too_long(password):
            raise ServiceError(ErrorKind.VALIDATION_ERROR, f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        if self.storage.find_user_by_email(email):
            raise ServiceError(ErrorKind.USER_EXISTS)

        pw_hash = hash_password(password, rounds=self.bcrypt_rounds)
        try:
            user = self.storage.create_user(email, pw_hash, first_name=first_name, last_name=last_name)
        except DuplicateEmail:
            # Lost a race with a concurrent registration for the same email
            raise ServiceError(ErrorKind.USER_EXISTS) from None

        logger.info("Registered user %s", user.id)
        return self._issue(user)

    @_boundary
    def login(self, email: str, password: str) -> IssuedSession:
        self._require_credentials(email, password)

        user = self.storage.find_user_by_email(email)
        if user is None:
            burn_password_check(password, rounds=self.bcrypt_rounds)
            logger.warning("Login failed: unknown email")
            raise ServiceError(ErrorKind.INVALID_CREDENTIALS)
        if not user.is_active:
            logger.warning("Login refused for deactivated user %s", user.id)
            raise ServiceError(ErrorKind.ACCOUNT_DEACTIVATED)
        if not verify_password(password, user.password_hash):
            logger.warning("Login failed for user %s: wrong password", user.id)
            raise ServiceError(ErrorKind.INVALID_CREDENTIALS)

        logger.info("User %s logged in", user.id)
        return self._issue(user)

    @_boundary
    def refresh(self, refresh_token: Optional[str]) -> str:
        """Return a new access token for a live refresh token."""
        if not refresh_token:
            raise ServiceError(ErrorKind.REFRESH_TOKEN_REQUIRED)

        try:
            self.codec.verify_refresh_token(refresh_token)
        except InvalidToken:
            raise ServiceError(ErrorKind.INVALID_REFRESH_TOKEN) from None

        # The stored expiry is checked on its own, independent of the exp claim
        record = self.storage.find_refresh_token(refresh_token)
        if record is None or as_utc(record.expires_at) < self.codec.clock():
            logger.info("Refresh denied: token revoked or expired")
            raise ServiceError(ErrorKind.REFRESH_TOKEN_EXPIRED)

        user = record.user
        if not user.is_active:
            logger.warning("Refresh refused for deactivated user %s", user.id)
            raise ServiceError(ErrorKind.ACCOUNT_DEACTIVATED)

        return self.codec.mint_access_token(user.id, user.email)

    @_boundary
    def logout(self, refresh_token: Optional[str]) -> int:
        """Delete the stored record for this refresh token, if any. Idempotent."""
        if not refresh_token:
            return 0
        deleted = self.storage.delete_refresh_token(refresh_token)
        logger.info("Logout removed %d refresh token(s)", deleted)
        return deleted

    @_boundary
    def logout_all(self, user_id: str) -> int:
        deleted = self.storage.delete_user_refresh_tokens(user_id)
        logger.info("Logout-all for user %s removed %d refresh token(s)", user_id, deleted)
        return deleted

    @_boundary
    def get_profile(self, user_id: str) -> User:
        user = self.storage.find_user_by_id(user_id)
        if user is None:
            raise ServiceError(ErrorKind.USER_NOT_FOUND)
        return user
