"""User model definitions."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String
from backend.database import Base

ADMIN_ROLE = "admin"
STUDENT_ROLE = "student"
ROLES = (ADMIN_ROLE, STUDENT_ROLE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_user_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """Represents a portal account, either an administrator or a student."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_user_id)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=STUDENT_ROLE)  # student/admin
    full_name = Column(String)
    course = Column(String)
    absences = Column(Integer, default=0)
    tests = Column(JSON, default=list)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
