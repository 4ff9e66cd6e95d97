import os
import re

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.auth import passwords  # noqa: E402
from backend.core import config  # noqa: E402
from backend.database import Base, get_db  # noqa: E402
from backend.models import one_time_code, recovery_session, user  # noqa: E402,F401
from backend.services.notifier import get_notifier  # noqa: E402

TEST_JWT_SECRET = 'test-secret-key-for-testing-only-do-not-use-in-production'

# Minimum bcrypt cost keeps the suite fast.
passwords.pwd_context.update(bcrypt__rounds=4)


class RecordingNotifier:
    def __init__(self) -> None:
        self.outbox: list[tuple[str, str, str]] = []

    def send(self, to_address: str, subject: str, body: str) -> None:
        self.outbox.append((to_address, subject, body))

    def last_code(self) -> str:
        _, _, body = self.outbox[-1]
        return re.search(r'\b(\d{6})\b', body).group(1)


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', TEST_JWT_SECRET)
    return TEST_JWT_SECRET


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def credential_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, notifier):
    from backend.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
