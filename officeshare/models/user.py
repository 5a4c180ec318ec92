import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String

from officeshare.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(16), nullable=False, default="user")
    created_at = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Boolean, default=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
