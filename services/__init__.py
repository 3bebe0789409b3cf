"""Business logic sitting between the HTTP layer and the credential store."""
from services.errors import ErrorKind, ServiceError
from services.session import SessionService, IssuedSession

__all__ = ["ErrorKind", "ServiceError", "SessionService", "IssuedSession"]
