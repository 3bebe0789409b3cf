from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, String, true
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<User {self.email}>"
