"""One-time code model definitions."""

from sqlalchemy import Column, DateTime, Integer, String
from backend.database import Base
from backend.models.user import utcnow


class OneTimeCode(Base):
    """A 6-digit password recovery code sent to an email address.

    Issuing a code deletes any previous code for the same email, so at most
    one row per email is live. A row is deleted when it is verified and is
    otherwise ignored once ``expires_at`` has passed.
    """
    __tablename__ = "one_time_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, index=True, nullable=False)
    code = Column(String(6), nullable=False)
    role = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
