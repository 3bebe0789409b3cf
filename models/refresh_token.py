"""
RefreshToken model: one row per issued refresh token, so a session can be
revoked by deleting its row even while the signed token is still unexpired.
Fields:
- token (the serialized JWT, unique; looked up by exact match)
- user_id (String(36)) - FK to users.id, ON DELETE CASCADE
- expires_at
- created_at, updated_at
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(512), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} expires_at={self.expires_at}>"
