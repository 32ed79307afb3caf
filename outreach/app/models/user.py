"""
User model - identity, role and account status
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from outreach.app.db.base import Base

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"

STATUS_ACTIVE = "ACTIVE"
STATUS_SUSPENDED = "SUSPENDED"
STATUS_BANNED = "BANNED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)
    image = Column(String(512), nullable=True)

    role = Column(String(20), default=ROLE_USER, nullable=False)  # USER | ADMIN
    status = Column(String(20), default=STATUS_ACTIVE, nullable=False)  # ACTIVE | SUSPENDED | BANNED
    free_emails_used = Column(Integer, default=0, nullable=False)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
