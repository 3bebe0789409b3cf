"""
Credential store: users and their refresh-token records.

DBStorage is constructed explicitly from a database URL and handed to the
application factory; nothing in the codebase reaches for a module-level
instance. Use it as a context manager so the engine is always disposed:

    with DBStorage(url) as storage:
        app = create_app(storage=storage)
        app.run()
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from models.base_model import Base, utcnow
from models.refresh_token import RefreshToken
from models.user import User

logger = logging.getLogger(__name__)

# Map model names for easy querying
classes = {
    "User": User,
    "RefreshToken": RefreshToken,
}


class ConstraintViolation(Exception):
    """Raised when a uniqueness or FK constraint is violated."""

    def __init__(self, message: str, detail: dict | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class DuplicateEmail(ConstraintViolation):
    """The email unique index rejected an insert."""


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _engine_options(url: str, timeout: float) -> dict:
    """create_engine() keyword arguments that bound every store call by timeout seconds.

    pool_timeout only covers waiting for a pooled connection, so the driver also
    gets a connect timeout and, where it supports one, a per-statement limit.
    """
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        options = {"connect_args": {"check_same_thread": False, "timeout": timeout}}
        if _is_memory_sqlite(url):
            # One shared connection, otherwise every checkout sees an empty database
            options["poolclass"] = StaticPool
        return options

    seconds = max(1, int(timeout))
    connect_args = {}
    if backend == "postgresql":
        connect_args = {
            "connect_timeout": seconds,
            "options": f"-c statement_timeout={seconds * 1000}",
        }
    elif backend in ("mysql", "mariadb"):
        connect_args = {"connect_timeout": seconds, "read_timeout": seconds, "write_timeout": seconds}
    return {"pool_pre_ping": True, "pool_timeout": timeout, "connect_args": connect_args}


class DBStorage:
    __engine = None
    __session = None

    def __init__(self, url: str, timeout: float = 30, echo: bool = False):
        """Create the engine; call reload() to create tables and the session factory."""
        self.url = url
        self.__engine = create_engine(url, echo=echo, **_engine_options(url, timeout))

        if self.__engine.url.get_backend_name() == "sqlite":
            # Enable SQLite foreign keys (needed for ON DELETE CASCADE)
            @event.listens_for(self.__engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

    def __enter__(self) -> "DBStorage":
        self.reload()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()
        return False

    def reload(self):
        """Create tables and start session"""
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)

    def new(self, obj):
        """Add object to session"""
        self.__session.add(obj)

    def save(self):
        """Commit session"""
        try:
            self.__session.commit()
        except SQLAlchemyError:
            self.__session.rollback()
            raise

    def count(self, cls=None):
        """Count objects"""
        if cls:
            return self.__session.query(cls).count()
        total = 0
        for model in classes.values():
            total += self.__session.query(model).count()
        return total

    def close(self):
        """Remove session (for API teardown)"""
        if self.__session is not None:
            self.__session.remove()

    def dispose(self):
        """Release the session and every pooled connection (process shutdown)."""
        self.close()
        if self.__engine is not None:
            self.__engine.dispose()
            logger.info("Database engine disposed")

    # expose the SQLAlchemy session for advanced querying (joins, filters, etc.)
    def get_session(self):
        return self.__session

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user_by_email(self, email: str) -> User | None:
        return self.__session.query(User).filter(User.email == email).first()

    def find_user_by_id(self, user_id: str) -> User | None:
        return self.__session.get(User, user_id)

    def create_user(self, email: str, password_hash: str, first_name: str | None = None,
                    last_name: str | None = None) -> User:
        """Insert a user. Raises DuplicateEmail if the email is already taken."""
        user = User(email=email, password_hash=password_hash, first_name=first_name, last_name=last_name)
        self.new(user)
        try:
            self.save()
        except IntegrityError as exc:
            raise DuplicateEmail("Email already registered", detail={"email": email}) from exc
        return user

    def delete_user(self, user_id: str) -> int:
        """Hard delete a user; the refresh_tokens FK cascades in the database."""
        deleted = self.__session.query(User).filter(User.id == user_id).delete(synchronize_session=False)
        self.save()
        self.__session.expire_all()
        return deleted

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def create_refresh_token(self, token: str, user_id: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(token=token, user_id=user_id, expires_at=expires_at)
        self.new(record)
        self.save()
        return record

    def find_refresh_token(self, token: str) -> RefreshToken | None:
        """Exact-match lookup that also loads the owning user."""
        return (
            self.__session.query(RefreshToken)
            .options(joinedload(RefreshToken.user))
            .filter(RefreshToken.token == token)
            .first()
        )

    def delete_refresh_token(self, token: str) -> int:
        deleted = (
            self.__session.query(RefreshToken)
            .filter(RefreshToken.token == token)
            .delete(synchronize_session=False)
        )
        self.save()
        return deleted

    def delete_user_refresh_tokens(self, user_id: str) -> int:
        deleted = (
            self.__session.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.save()
        return deleted

    def purge_expired_refresh_tokens(self, now: datetime | None = None) -> int:
        """Delete refresh-token rows whose expiry has passed."""
        now = now or utcnow()
        deleted = (
            self.__session.query(RefreshToken)
            .filter(RefreshToken.expires_at < now)
            .delete(synchronize_session=False)
        )
        self.save()
        return deleted
