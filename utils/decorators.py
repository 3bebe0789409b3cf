"""
Request guards for access tokens.

The token is read from "Authorization: Bearer <token>" first, then from the
access-token cookie. It is checked by signature and expiry only (no database
lookup). On success g.identity holds an Identity; jwt_optional() leaves it
as None when the token is missing or bad.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import current_app, g, request

from services.errors import ErrorKind, ServiceError
from utils.tokens import InvalidToken, extract_bearer_token


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str


def request_access_token() -> str | None:
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        token = request.cookies.get(current_app.config["ACCESS_COOKIE_NAME"]) or None
    return token


def _verify(token: str) -> Identity:
    payload = current_app.extensions["token_codec"].verify_access_token(token)
    return Identity(user_id=payload.user_id, email=payload.email)


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = request_access_token()
            if not token:
                raise ServiceError(ErrorKind.UNAUTHORIZED, "Access token is required")
            try:
                g.identity = _verify(token)
            except InvalidToken:
                raise ServiceError(ErrorKind.UNAUTHORIZED) from None
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def jwt_optional():
    """Attach an identity when a valid token is present; never rejects."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            g.identity = None
            token = request_access_token()
            if token:
                try:
                    g.identity = _verify(token)
                except InvalidToken:
                    pass
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def current_identity() -> Identity | None:
    return g.get("identity")
