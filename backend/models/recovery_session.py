"""Recovery session model definitions."""

from sqlalchemy import Column, DateTime, String
from backend.database import Base
from backend.models.user import utcnow


class RecoverySession(Base):
    """Server-side state of one client's password recovery flow."""
    __tablename__ = "recovery_sessions"

    id = Column(String, primary_key=True)
    stage = Column(String, nullable=False)
    email = Column(String)
    role = Column(String)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
