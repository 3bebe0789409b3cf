"""
tests/conftest.py -- Shared fixtures.

Every test gets its own in-memory SQLite store (StaticPool keeps the one
connection alive, so the schema survives between sessions) and a Flask app
built with TestingConfig, which lowers the bcrypt cost to keep the suite fast.

Route tests use clients with use_cookies=False and pass cookies explicitly,
so each request shows exactly which token it presents.
"""

from __future__ import annotations

import os

os.environ.setdefault("APP_ENV", "test")

import pytest

from api import create_app
from models.db_storage import DBStorage
from services.session import SessionService
from utils.tokens import TokenCodec

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"


@pytest.fixture
def storage():
    with DBStorage("sqlite://") as store:
        yield store


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture
def service(storage, codec) -> SessionService:
    return SessionService(storage, codec, bcrypt_rounds=4)


@pytest.fixture
def app(storage, codec):
    return create_app("testing", storage=storage, codec=codec)


@pytest.fixture
def client(app):
    return app.test_client(use_cookies=False)
