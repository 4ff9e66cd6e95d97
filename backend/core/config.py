import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))

TOKEN_COOKIE_NAME = "token"
RECOVERY_COOKIE_NAME = "recovery_session"
COOKIE_SECURE = _get_bool(os.getenv("COOKIE_SECURE"), default=False)

OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "5"))
RECOVERY_SESSION_TTL_MINUTES = int(os.getenv("RECOVERY_SESSION_TTL_MINUTES", "15"))

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", SMTP_USER)
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "Student System")

DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "")

COURSES = [
    "Web Development",
    "Graphic Design",
    "App Development",
    "Data Science",
]


def is_production() -> bool:
    return APP_ENV.strip().lower() == "production"


def smtp_configured() -> bool:
    return bool(SMTP_HOST and EMAIL_FROM)


def validate_runtime_config() -> None:
    if not JWT_SECRET_KEY:
        raise RuntimeError("JWT_SECRET_KEY must be set. Generate one with `python -m backend.generate_jwt_secret`.")
    if OTP_TTL_MINUTES <= 0:
        raise RuntimeError("OTP_TTL_MINUTES must be a positive number of minutes.")
    if is_production():
        if not smtp_configured():
            raise RuntimeError("SMTP_HOST and EMAIL_FROM must be set in production.")
        if not DEFAULT_ADMIN_PASSWORD:
            raise RuntimeError("DEFAULT_ADMIN_PASSWORD must be set in production.")
