"""Persistence layer: SQLAlchemy models, the credential store and marshmallow schemas."""
from models.base_model import Base
from models.user import User
from models.refresh_token import RefreshToken
from models.db_storage import DBStorage, DuplicateEmail

__all__ = ["Base", "User", "RefreshToken", "DBStorage", "DuplicateEmail"]
