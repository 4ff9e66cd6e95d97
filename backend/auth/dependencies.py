from fastapi import Depends, Request
from pydantic import BaseModel

from backend.auth import jwt_handler
from backend.core import config
from backend.core.errors import Forbidden, LoginRequired


class TokenClaims(BaseModel):
    id: str
    username: str
    email: str
    role: str
    iat: int
    exp: int


def get_current_user(request: Request) -> TokenClaims:
    token = request.cookies.get(config.TOKEN_COOKIE_NAME)
    if not token:
        raise LoginRequired(clear_cookie=False)

    payload = jwt_handler.verify_access_token(token)
    if payload is None:
        raise LoginRequired(clear_cookie=True)

    try:
        claims = TokenClaims.model_validate(payload)
    except ValueError as exc:
        raise LoginRequired(clear_cookie=True) from exc

    request.state.user = claims
    return claims


def require_role(expected: str):
    def _guard(current_user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
        if current_user.role != expected:
            raise Forbidden()
        return current_user
    return _guard


def get_optional_user(request: Request) -> TokenClaims | None:
    token = request.cookies.get(config.TOKEN_COOKIE_NAME)
    if not token:
        return None
    payload = jwt_handler.verify_access_token(token)
    if payload is None:
        return None
    try:
        return TokenClaims.model_validate(payload)
    except ValueError:
        return None
