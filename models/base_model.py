#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixin for the auth service models.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps (UTC)

Notes:
- Timestamps get a Python-side default so they are populated right after
  commit (the session uses expire_on_commit=False), and a server default
  for rows inserted outside the ORM.
- SQLite drops tzinfo on DateTime(timezone=True); use as_utc() before
  comparing a loaded value against an aware datetime.
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the database."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BaseModel:
    """
    Base mixin for all persistent models.

    - id, created_at, updated_at
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        If you pass created_at/updated_at explicitly (e.g., in tests), they will be set.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        # Ensure an id exists if caller passed none
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

