import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")


def _engine_options(url: str | None) -> dict:
    if url and url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_credential_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_credential_schema() -> None:
    global _credential_schema_checked

    if _credential_schema_checked:
        return

    with _schema_lock:
        if _credential_schema_checked:
            return

        # Imported for their side effect of registering tables on Base.
        from backend.models import one_time_code, recovery_session, user  # noqa: F401

        Base.metadata.create_all(bind=engine)

        inspector = inspect(engine)
        existing_columns = {column['name'] for column in inspector.get_columns('users')}
        migration_steps = [
            ('username', 'ALTER TABLE users ADD COLUMN username VARCHAR'),
            ('full_name', 'ALTER TABLE users ADD COLUMN full_name VARCHAR'),
            ('course', 'ALTER TABLE users ADD COLUMN course VARCHAR'),
            ('absences', 'ALTER TABLE users ADD COLUMN absences INTEGER DEFAULT 0'),
            ('tests', "ALTER TABLE users ADD COLUMN tests JSON DEFAULT '[]'"),
            ('created_at', 'ALTER TABLE users ADD COLUMN created_at TIMESTAMP'),
            ('updated_at', 'ALTER TABLE users ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            # Accounts from before usernames existed log in with their email.
            connection.execute(text('UPDATE users SET username = email WHERE username IS NULL'))
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users(username)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_one_time_codes_email_expiry ON one_time_codes(email, expires_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_users_role_course ON users(role, course)')
            )

        _credential_schema_checked = True
