from datetime import datetime, timedelta, timezone

import jwt

from backend.core import config
from backend.core.errors import ConfigurationError, InvalidToken


def _signing_secret() -> str:
    if not config.JWT_SECRET_KEY:
        raise ConfigurationError("JWT_SECRET_KEY is not configured.")
    return config.JWT_SECRET_KEY


def create_access_token(user, issued_at: datetime | None = None) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=config.JWT_EXPIRES_MINUTES)
    payload = {
        "sub": str(user.id),
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "iat": issued_at,
        "exp": expire,
    }
    return jwt.encode(payload, _signing_secret(), algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            _signing_secret(),
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["exp", "iat", "sub"]},
        )
    except (jwt.InvalidTokenError, ConfigurationError) as exc:
        raise InvalidToken() from exc


def verify_access_token(token: str) -> dict | None:
    try:
        return decode_access_token(token)
    except InvalidToken:
        return None
