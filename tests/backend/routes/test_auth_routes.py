from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from backend.auth import jwt_handler
from backend.core import config
from backend.services import credential_store


@pytest.fixture
def accounts(session_factory):
    db = session_factory()
    try:
        credential_store.create_user(
            db, user_id='a001', username='admin', email='admin@system.com', password='admin-pass', role='admin'
        )
        credential_store.create_user(
            db, user_id='s001', username='alice', email='alice@x.com', password='old-password',
            full_name='Alice Example', course='Data Science',
        )
    finally:
        db.close()


def _login(client, username: str, password: str):
    return client.post('/login', json={'username': username, 'password': password}, follow_redirects=False)


def _cookie_cleared(response, name: str) -> bool:
    return any(
        header.startswith(f'{name}=') and 'Max-Age=0' in header
        for header in response.headers.get_list('set-cookie')
    )


def test_login_sets_token_cookie_and_redirects_by_role(client, accounts) -> None:
    admin_response = _login(client, 'admin', 'admin-pass')
    student_response = _login(client, 'alice@x.com', 'old-password')

    assert admin_response.status_code == 303
    assert admin_response.headers['location'] == '/admin/dashboard'
    assert student_response.status_code == 303
    assert student_response.headers['location'] == '/student/profile'
    assert 'httponly' in student_response.headers['set-cookie'].lower()

    claims = jwt_handler.verify_access_token(student_response.cookies[config.TOKEN_COOKIE_NAME])
    assert claims['id'] == 's001'
    assert claims['role'] == 'student'


def test_login_rejects_bad_credentials(client, accounts) -> None:
    response = _login(client, 'alice', 'wrong')

    assert response.status_code == 401
    assert response.json() == {'detail': 'Invalid credentials'}
    assert config.TOKEN_COOKIE_NAME not in response.cookies


def test_protected_route_without_token_redirects_to_login(client) -> None:
    response = client.get('/me', follow_redirects=False)

    assert response.status_code == 303
    assert response.headers['location'] == '/login'
    assert not _cookie_cleared(response, config.TOKEN_COOKIE_NAME)


def test_invalid_token_is_cleared_before_redirect(client) -> None:
    client.cookies.set(config.TOKEN_COOKIE_NAME, 'garbage')

    response = client.get('/student/profile', follow_redirects=False)

    assert response.status_code == 303
    assert response.headers['location'] == '/login'
    assert _cookie_cleared(response, config.TOKEN_COOKIE_NAME)


def test_expired_token_is_cleared_before_redirect(client, accounts) -> None:
    user = SimpleNamespace(id='s001', username='alice', email='alice@x.com', role='student')
    expired = jwt_handler.create_access_token(user, issued_at=datetime.now(timezone.utc) - timedelta(hours=25))
    client.cookies.set(config.TOKEN_COOKIE_NAME, expired)

    response = client.get('/me', follow_redirects=False)

    assert response.status_code == 303
    assert _cookie_cleared(response, config.TOKEN_COOKIE_NAME)


def test_me_returns_claims_of_logged_in_user(client, accounts) -> None:
    _login(client, 'alice', 'old-password')

    response = client.get('/me')

    assert response.status_code == 200
    assert response.json() == {'id': 's001', 'username': 'alice', 'email': 'alice@x.com', 'role': 'student'}


def test_student_cannot_open_admin_dashboard(client, accounts) -> None:
    _login(client, 'alice', 'old-password')

    response = client.get('/admin/dashboard', follow_redirects=False)

    assert response.status_code == 403
    assert response.json() == {'detail': 'Access Denied'}


def test_admin_cannot_open_student_profile(client, accounts) -> None:
    _login(client, 'admin', 'admin-pass')

    response = client.get('/student/profile', follow_redirects=False)

    assert response.status_code == 403


def test_student_profile_returns_own_record(client, accounts) -> None:
    _login(client, 'alice', 'old-password')

    response = client.get('/student/profile')

    assert response.status_code == 200
    assert response.json()['full_name'] == 'Alice Example'
    assert response.json()['course'] == 'Data Science'


def test_logout_clears_token(client, accounts) -> None:
    _login(client, 'alice', 'old-password')

    response = client.get('/logout', follow_redirects=False)

    assert response.status_code == 303
    assert response.headers['location'] == '/login'
    assert _cookie_cleared(response, config.TOKEN_COOKIE_NAME)


def test_home_redirects_by_login_state(client, accounts) -> None:
    assert client.get('/', follow_redirects=False).headers['location'] == '/login'

    _login(client, 'admin', 'admin-pass')

    assert client.get('/', follow_redirects=False).headers['location'] == '/admin/dashboard'


def test_password_recovery_over_http(client, accounts, notifier) -> None:
    forgot = client.post('/forgot-password', json={'email': 'alice@x.com'})
    assert forgot.status_code == 200
    assert forgot.json() == {'message': 'OTP sent to your email!', 'stage': 'awaiting_code'}
    assert config.RECOVERY_COOKIE_NAME in client.cookies

    verify = client.post('/verify-otp', json={'email': 'alice@x.com', 'otp': notifier.last_code()})
    assert verify.status_code == 200
    assert verify.json()['stage'] == 'awaiting_reset'

    reset = client.post('/reset-password', json={'password': 'p1', 'confirmPassword': 'p1'})
    assert reset.status_code == 200
    assert reset.json() == {'message': 'Password reset successfully. Please log in.', 'stage': 'idle'}
    assert _cookie_cleared(reset, config.RECOVERY_COOKIE_NAME)

    assert _login(client, 'alice', 'p1').status_code == 303
    assert _login(client, 'alice', 'old-password').status_code == 401


def test_forgot_password_for_unknown_email(client, accounts, notifier) -> None:
    response = client.post('/forgot-password', json={'email': 'nobody@x.com'})

    assert response.status_code == 404
    assert response.json() == {'detail': 'No account found with this email.'}
    assert notifier.outbox == []


def test_verify_otp_with_wrong_code(client, accounts, notifier) -> None:
    client.post('/forgot-password', json={'email': 'alice@x.com'})
    wrong = '000000' if notifier.last_code() != '000000' else '111111'

    response = client.post('/verify-otp', json={'otp': wrong})

    assert response.status_code == 400
    assert response.json() == {'detail': 'Invalid or expired OTP.'}


def test_reset_password_without_recovery_session(client, accounts) -> None:
    response = client.post('/reset-password', json={'password': 'p1', 'confirmPassword': 'p1'})

    assert response.status_code == 409
    assert _login(client, 'alice', 'old-password').status_code == 303


def test_reset_password_mismatch(client, accounts, notifier) -> None:
    client.post('/forgot-password', json={'email': 'alice@x.com'})
    client.post('/verify-otp', json={'otp': notifier.last_code()})

    response = client.post('/reset-password', json={'password': 'p1', 'confirmPassword': 'p2'})

    assert response.status_code == 400
    assert response.json() == {'detail': 'Passwords do not match'}


def test_recovery_session_is_not_shared_between_clients(client, accounts, notifier) -> None:
    from fastapi.testclient import TestClient

    client.post('/forgot-password', json={'email': 'alice@x.com'})
    other_client = TestClient(client.app)

    response = other_client.post('/verify-otp', json={'email': 'alice@x.com', 'otp': notifier.last_code()})

    assert response.status_code == 409
