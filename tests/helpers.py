"""Response helpers for route tests."""

from __future__ import annotations


def set_cookies(resp) -> dict[str, str]:
    """Map cookie name -> raw Set-Cookie header for a response."""
    cookies = {}
    for header in resp.headers.getlist("Set-Cookie"):
        name = header.split("=", 1)[0]
        cookies[name] = header
    return cookies


def cookie_value(resp, name: str) -> str | None:
    header = set_cookies(resp).get(name)
    if header is None:
        return None
    return header.split("=", 1)[1].split(";", 1)[0]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
