"""
Token codec: signed access and refresh tokens (PyJWT, HS256 by default).

- Access tokens carry userId/email and are trusted on signature + expiry alone.
- Refresh tokens carry userId/tokenId; the database row is what makes them
  usable, see services.session.
- The two kinds are signed with separate secrets and tagged with a "type"
  claim, so one can never be accepted as the other.

Durations use the "<integer><unit>" format, unit one of s, m, h, d
(e.g. "15m", "7d").
"""
from __future__ import annotations

import re
import secrets
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import jwt

_DURATION_RE = re.compile(r"([0-9]+)([smhd])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}

BEARER_PREFIX = "Bearer "


class InvalidToken(Exception):
    """Token failed verification: malformed, wrongly signed, expired or of the wrong kind."""


class InvalidFormat(ValueError):
    """A duration string did not match <integer><unit>."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(duration: str) -> timedelta:
    if not isinstance(duration, str):
        raise InvalidFormat("Invalid expiration format")
    match = _DURATION_RE.fullmatch(duration)
    if not match:
        raise InvalidFormat(f"Invalid expiration format: {duration!r}")
    value, unit = match.groups()
    try:
        return timedelta(seconds=int(value) * _UNIT_SECONDS[unit])
    except OverflowError:
        raise InvalidFormat(f"Expiration out of range: {duration!r}") from None


def compute_expiry(duration: str, now: Optional[datetime] = None) -> datetime:
    """Return now + duration.

    >>> compute_expiry("15m", now=datetime(2024, 1, 1, tzinfo=timezone.utc))
    datetime.datetime(2024, 1, 1, 0, 15, tzinfo=datetime.timezone.utc)
    """
    delta = parse_duration(duration)
    try:
        return (now or _utcnow()) + delta
    except OverflowError:
        raise InvalidFormat(f"Expiration out of range: {duration!r}") from None


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    """Return the token after "Bearer ", or None when the header is absent or uses another scheme."""
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX):]


def generate_token_id() -> str:
    """Per-issuance discriminator for refresh tokens (time + random)."""
    return f"refresh_{time.time_ns()}_{secrets.token_hex(8)}"


@dataclass(frozen=True)
class AccessTokenPayload:
    user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RefreshTokenPayload:
    user_id: str
    token_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenCodec:
    access_secret: str
    refresh_secret: str
    access_expires_in: str = "15m"
    refresh_expires_in: str = "7d"
    algorithm: str = "HS256"
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False, compare=False)

    def __post_init__(self):
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Both access and refresh signing secrets are required")
        # Fail at construction rather than on the first login
        parse_duration(self.access_expires_in)
        parse_duration(self.refresh_expires_in)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TokenCodec":
        return cls(
            access_secret=config["JWT_ACCESS_SECRET"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            access_expires_in=config.get("JWT_ACCESS_EXPIRES_IN", "15m"),
            refresh_expires_in=config.get("JWT_REFRESH_EXPIRES_IN", "7d"),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
        )

    # ------------------------------------------------------------------
    # Minting
    # ------------------------------------------------------------------

    def _encode(self, claims: Dict[str, Any], secret: str, duration: str) -> str:
        now = self.clock()
        payload = dict(claims, iat=int(now.timestamp()), exp=int(compute_expiry(duration, now).timestamp()))
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def mint_access_token(self, user_id: str, email: str) -> str:
        claims = {"userId": str(user_id), "email": email, "type": "access", "jti": uuid.uuid4().hex}
        return self._encode(claims, self.access_secret, self.access_expires_in)

    def mint_refresh_token(self, user_id: str, token_id: str) -> str:
        claims = {"userId": str(user_id), "tokenId": token_id, "type": "refresh"}
        return self._encode(claims, self.refresh_secret, self.refresh_expires_in)

    def refresh_expiry(self) -> datetime:
        """Expiry to store alongside a refresh token minted now."""
        return compute_expiry(self.refresh_expires_in, self.clock())

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _decode(self, token: str, secret: str, expected_type: str, required: tuple) -> Dict[str, Any]:
        # One message for every failure so callers cannot tell expired from forged
        message = f"Invalid {expected_type} token"
        if not isinstance(token, str) or not token:
            raise InvalidToken(message)
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidToken(message) from exc

        if decoded.get("type") != expected_type:
            raise InvalidToken(message)
        if any(not isinstance(decoded.get(claim), str) or not decoded.get(claim) for claim in required):
            raise InvalidToken(message)
        return decoded

    def verify_access_token(self, token: str) -> AccessTokenPayload:
        decoded = self._decode(token, self.access_secret, "access", ("userId", "email"))
        return AccessTokenPayload(
            user_id=decoded["userId"],
            email=decoded["email"],
            issued_at=datetime.fromtimestamp(decoded["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
        )

    def verify_refresh_token(self, token: str) -> RefreshTokenPayload:
        decoded = self._decode(token, self.refresh_secret, "refresh", ("userId", "tokenId"))
        return RefreshTokenPayload(
            user_id=decoded["userId"],
            token_id=decoded["tokenId"],
            issued_at=datetime.fromtimestamp(decoded["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
        )
