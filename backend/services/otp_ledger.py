"""Password recovery codes kept in the ``one_time_codes`` table."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func
from sqlalchemy.orm import Session

from backend.core import config
from backend.models.one_time_code import OneTimeCode
from backend.models.user import utcnow
from backend.services.credential_store import normalize_email, store_errors

logger = logging.getLogger(__name__)

CODE_DIGITS = 6


@dataclass(frozen=True)
class OneTimeCodeRecord:
    email: str
    code: str
    role: str
    expires_at: datetime
    created_at: datetime


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


def issue_code(
    db: Session,
    email: str,
    role: str,
    ttl_minutes: int | None = None,
    now: datetime | None = None,
) -> str:
    email = normalize_email(email)
    now = now or utcnow()
    ttl_minutes = ttl_minutes or config.OTP_TTL_MINUTES
    code = generate_code()

    with store_errors(db, "issue a one-time code"):
        # Replace rather than update so an older expiry can never survive.
        db.execute(
            delete(OneTimeCode)
            .where(OneTimeCode.email == email)
            .execution_options(synchronize_session=False)
        )
        db.add(
            OneTimeCode(
                email=email,
                code=code,
                role=role,
                expires_at=now + timedelta(minutes=ttl_minutes),
                created_at=now,
            )
        )
        db.commit()

    return code


def consume_code(db: Session, email: str, code: str, now: datetime | None = None) -> OneTimeCodeRecord | None:
    """Delete and return the live code matching ``email`` and ``code``.

    The lookup and the delete are one statement, so when several requests
    present the same code only one of them gets a record back. Wrong,
    expired and missing codes all return ``None``.
    """
    email = normalize_email(email)
    code = (code or "").strip()
    now = now or utcnow()

    statement = (
        delete(OneTimeCode)
        .where(
            OneTimeCode.email == email,
            OneTimeCode.code == code,
            OneTimeCode.expires_at > now,
        )
        .returning(
            OneTimeCode.email,
            OneTimeCode.code,
            OneTimeCode.role,
            OneTimeCode.expires_at,
            OneTimeCode.created_at,
        )
        .execution_options(synchronize_session=False)
    )

    with store_errors(db, "consume a one-time code"):
        row = db.execute(statement).first()
        db.commit()

    if row is None:
        return None
    return OneTimeCodeRecord(
        email=row.email,
        code=row.code,
        role=row.role,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )


def sweep_expired(db: Session, now: datetime | None = None) -> int:
    now = now or utcnow()
    with store_errors(db, "sweep expired one-time codes"):
        result = db.execute(
            delete(OneTimeCode)
            .where(OneTimeCode.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        db.commit()

    removed = result.rowcount or 0
    logger.info("Cleaned %s expired one-time codes.", removed)
    return removed


def count_live_codes(db: Session, now: datetime | None = None) -> int:
    now = now or utcnow()
    with store_errors(db, "count one-time codes"):
        return db.query(func.count(OneTimeCode.id)).filter(OneTimeCode.expires_at > now).scalar() or 0
