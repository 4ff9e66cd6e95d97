"""Forgot password, verify code, reset password.

Each client's progress is a ``RecoveryContext`` stored in the
``recovery_sessions`` table and addressed by an opaque id kept in a cookie::

    IDLE --request_reset--> AWAITING_CODE --submit_code--> AWAITING_RESET
      ^                                                          |
      +------------------------submit_new_password---------------+

A step called from the wrong stage raises ``InvalidFlowState`` before it
touches the user table or the code ledger. ``request_reset`` is allowed from
any stage and restarts the flow for the new email.
"""

import enum
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from backend.core import config
from backend.core.errors import (
    DeliveryError,
    InvalidFlowState,
    InvalidOrExpiredCode,
    InvalidPassword,
    NotFound,
    PasswordMismatch,
    UpstreamUnavailable,
)
from backend.models.recovery_session import RecoverySession
from backend.models.user import utcnow
from backend.services import credential_store, otp_ledger
from backend.services.notifier import Notifier, redact_email, send_reset_code

logger = logging.getLogger(__name__)


class RecoveryStage(str, enum.Enum):
    IDLE = "idle"
    AWAITING_CODE = "awaiting_code"
    AWAITING_RESET = "awaiting_reset"


@dataclass
class RecoveryContext:
    session_id: str
    stage: RecoveryStage = RecoveryStage.IDLE
    email: str | None = None
    role: str | None = None

    @property
    def is_idle(self) -> bool:
        return self.stage == RecoveryStage.IDLE


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def load_context(db: Session, session_id: str | None, now: datetime | None = None) -> RecoveryContext:
    now = now or utcnow()
    if not session_id:
        return RecoveryContext(session_id=new_session_id())

    with credential_store.store_errors(db, "load a recovery session"):
        record = db.query(RecoverySession).filter(RecoverySession.id == session_id).first()

    if record is None or record.expires_at <= now:
        return RecoveryContext(session_id=new_session_id())

    return RecoveryContext(
        session_id=record.id,
        stage=RecoveryStage(record.stage),
        email=record.email,
        role=record.role,
    )


def save_context(db: Session, context: RecoveryContext, now: datetime | None = None) -> None:
    now = now or utcnow()
    expires_at = now + timedelta(minutes=config.RECOVERY_SESSION_TTL_MINUTES)

    with credential_store.store_errors(db, "save a recovery session"):
        record = db.query(RecoverySession).filter(RecoverySession.id == context.session_id).first()
        if record is None:
            record = RecoverySession(id=context.session_id, created_at=now)
            db.add(record)
        record.stage = context.stage.value
        record.email = context.email
        record.role = context.role
        record.expires_at = expires_at
        record.updated_at = now
        db.commit()


def clear_context(db: Session, context: RecoveryContext) -> None:
    with credential_store.store_errors(db, "clear a recovery session"):
        db.query(RecoverySession).filter(RecoverySession.id == context.session_id).delete(
            synchronize_session=False
        )
        db.commit()

    context.stage = RecoveryStage.IDLE
    context.email = None
    context.role = None


def _require_stage(context: RecoveryContext, stage: RecoveryStage, email: str | None) -> None:
    if context.stage != stage:
        raise InvalidFlowState()
    if email and credential_store.normalize_email(email) != context.email:
        raise InvalidFlowState()


def request_reset(
    db: Session,
    context: RecoveryContext,
    email: str,
    notifier: Notifier,
    now: datetime | None = None,
) -> None:
    now = now or utcnow()
    email = credential_store.normalize_email(email)

    user = credential_store.find_user_by_email(db, email) if email else None
    if user is None:
        raise NotFound("No account found with this email.")

    code = otp_ledger.issue_code(db, user.email, user.role, now=now)
    try:
        send_reset_code(notifier, user.email, code, config.OTP_TTL_MINUTES)
    except DeliveryError as exc:
        raise UpstreamUnavailable("Failed to send OTP. Try again.") from exc

    context.stage = RecoveryStage.AWAITING_CODE
    context.email = user.email
    context.role = None
    save_context(db, context, now=now)
    logger.info("Password reset code issued for %s.", redact_email(user.email))


def submit_code(
    db: Session,
    context: RecoveryContext,
    code: str,
    email: str | None = None,
    now: datetime | None = None,
) -> otp_ledger.OneTimeCodeRecord:
    now = now or utcnow()
    _require_stage(context, RecoveryStage.AWAITING_CODE, email)

    record = otp_ledger.consume_code(db, context.email, code, now=now)
    if record is None:
        raise InvalidOrExpiredCode()

    context.stage = RecoveryStage.AWAITING_RESET
    context.role = record.role
    save_context(db, context, now=now)
    return record


def submit_new_password(
    db: Session,
    context: RecoveryContext,
    new_password: str,
    confirm_password: str,
    email: str | None = None,
) -> None:
    _require_stage(context, RecoveryStage.AWAITING_RESET, email)

    if new_password != confirm_password:
        raise PasswordMismatch()
    if not new_password:
        raise InvalidPassword()

    credential_store.update_user_password(db, context.email, new_password)
    reset_email = context.email
    clear_context(db, context)
    logger.info("Password reset completed for %s.", redact_email(reset_email))
