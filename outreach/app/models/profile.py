"""
Profile database model - sender background used to personalize generated emails
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, JSON
from sqlalchemy.orm import backref, relationship
from datetime import datetime

from outreach.app.db.base import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    headline = Column(String(200), nullable=True)
    bio = Column(Text, nullable=True)
    skills = Column(JSON, default=list)
    interests = Column(JSON, default=list)
    education = Column(JSON, default=list)  # [{institution, degree, field, year}]
    experience = Column(JSON, default=list)  # [{company, role, duration, description}]
    goals = Column(Text, nullable=True)

    linkedin_url = Column(String(500), nullable=True)
    github_url = Column(String(500), nullable=True)
    portfolio_url = Column(String(500), nullable=True)
    other_links = Column(JSON, default=list)  # [{label, url}]

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", backref=backref("profile", uselist=False, cascade="all, delete-orphan"))
