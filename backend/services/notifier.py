"""Outbound email for password recovery codes."""

import logging
import smtplib
from email.mime.text import MIMEText
from typing import Protocol

from backend.core import config
from backend.core.errors import DeliveryError

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 15
RESET_CODE_SUBJECT = "Password Reset OTP"


def redact_email(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class Notifier(Protocol):
    def send(self, to_address: str, subject: str, body: str) -> None: ...


class SmtpNotifier:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_email: str,
        from_name: str,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name

    def _connect(self) -> smtplib.SMTP:
        conn = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
        try:
            conn.ehlo()
            conn.starttls()
            conn.ehlo()
            if self.username:
                conn.login(self.username, self.password)
        except (smtplib.SMTPException, OSError):
            conn.close()
            raise
        return conn

    def send(self, to_address: str, subject: str, body: str) -> None:
        message = MIMEText(body, "plain", "utf-8")
        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_address

        try:
            with self._connect() as conn:
                conn.sendmail(self.from_email, [to_address], message.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send '%s' to %s: %s", subject, redact_email(to_address), exc)
            raise DeliveryError(str(exc)) from exc

        logger.info("Sent '%s' to %s.", subject, redact_email(to_address))


class LoggingNotifier:
    """Stands in for SMTP on development machines without a mail server."""

    def __init__(self) -> None:
        self.outbox: list[tuple[str, str, str]] = []

    def send(self, to_address: str, subject: str, body: str) -> None:
        self.outbox.append((to_address, subject, body))
        logger.warning("SMTP is not configured; '%s' for %s was not sent.", subject, redact_email(to_address))


def get_notifier() -> Notifier:
    if config.smtp_configured():
        return SmtpNotifier(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            from_email=config.EMAIL_FROM,
            from_name=config.EMAIL_FROM_NAME,
        )
    if config.is_production():
        raise RuntimeError("SMTP must be configured in production.")
    return LoggingNotifier()


def send_reset_code(notifier: Notifier, email: str, code: str, ttl_minutes: int) -> None:
    body = (
        f"Your OTP code is: {code}\n\n"
        f"It expires in {ttl_minutes} minutes. If you did not ask to reset your password, ignore this email."
    )
    notifier.send(email, RESET_CODE_SUBJECT, body)
