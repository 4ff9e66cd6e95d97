import base64
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest

from backend.auth import jwt_handler
from backend.core import config
from backend.core.errors import ConfigurationError, InvalidToken


def _user(role: str = 'student') -> SimpleNamespace:
    return SimpleNamespace(id='u-42', username='alice', email='alice@x.com', role=role)


def test_verify_returns_issued_claims() -> None:
    token = jwt_handler.create_access_token(_user())

    claims = jwt_handler.verify_access_token(token)

    assert claims['id'] == 'u-42'
    assert claims['sub'] == 'u-42'
    assert claims['username'] == 'alice'
    assert claims['email'] == 'alice@x.com'
    assert claims['role'] == 'student'
    assert claims['exp'] - claims['iat'] == 24 * 60 * 60


def test_token_is_still_valid_moments_before_expiry() -> None:
    issued_at = datetime.now(timezone.utc).replace(microsecond=0) - timedelta(hours=24) + timedelta(seconds=2)
    token = jwt_handler.create_access_token(_user(), issued_at=issued_at)

    assert jwt_handler.verify_access_token(token) is not None


def test_token_fails_after_expiry() -> None:
    issued_at = datetime.now(timezone.utc) - timedelta(hours=24, seconds=1)
    token = jwt_handler.create_access_token(_user(), issued_at=issued_at)

    assert jwt_handler.verify_access_token(token) is None
    with pytest.raises(InvalidToken):
        jwt_handler.decode_access_token(token)


def test_token_signed_with_another_secret_is_rejected() -> None:
    now = datetime.now(timezone.utc)
    forged = jwt.encode(
        {'sub': 'a001', 'id': 'a001', 'username': 'admin', 'email': 'admin@system.com', 'role': 'admin',
         'iat': now, 'exp': now + timedelta(hours=1)},
        'fallback_development_key_only',
        algorithm='HS256',
    )

    assert jwt_handler.verify_access_token(forged) is None


def test_tampered_and_malformed_tokens_are_rejected() -> None:
    token = jwt_handler.create_access_token(_user())
    header, payload, signature = token.split('.')
    claims = json.loads(base64.urlsafe_b64decode(payload + '=' * (-len(payload) % 4)))
    claims['role'] = 'admin'
    escalated = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b'=').decode()
    tampered = '.'.join([header, escalated, signature])

    assert jwt_handler.verify_access_token(tampered) is None
    assert jwt_handler.verify_access_token('not-a-token') is None


def test_token_without_expiry_is_rejected() -> None:
    unbounded = jwt.encode({'sub': 'u-42', 'iat': datetime.now(timezone.utc)}, config.JWT_SECRET_KEY, algorithm='HS256')

    assert jwt_handler.verify_access_token(unbounded) is None


def test_issue_refuses_to_sign_without_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    token = jwt_handler.create_access_token(_user())
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', '')

    with pytest.raises(ConfigurationError):
        jwt_handler.create_access_token(_user())
    assert jwt_handler.verify_access_token(token) is None
