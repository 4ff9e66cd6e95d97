"""User record access for login, recovery and the admin screens.

Every function takes the request's SQLAlchemy session. Database failures
are rolled back, logged and re-raised as ``UpstreamUnavailable``.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.passwords import hash_password, verify_password
from backend.core import config
from backend.core.errors import DuplicateIdentity, InvalidCredentials, NotFound, UpstreamUnavailable
from backend.models.user import ADMIN_ROLE, STUDENT_ROLE, User, utcnow

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ID = "a001"
DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_EMAIL = "admin@system.com"
DEVELOPMENT_ADMIN_PASSWORD = "admin123"

EDITABLE_FIELDS = ("full_name", "username", "email", "course", "absences", "tests")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@contextmanager
def store_errors(db: Session, action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Credential store failed to %s.", action)
        raise UpstreamUnavailable() from exc


def find_user_by_id(db: Session, user_id: str) -> User | None:
    with store_errors(db, "load user by id"):
        return db.query(User).filter(User.id == user_id).first()


def find_user_by_email(db: Session, email: str) -> User | None:
    with store_errors(db, "load user by email"):
        return db.query(User).filter(User.email == normalize_email(email)).first()


def find_user_by_login(db: Session, login: str) -> User | None:
    login = (login or "").strip()
    with store_errors(db, "load user by login"):
        return db.query(User).filter(
            or_(User.username == login, User.email == login.lower())
        ).first()


def list_users_by_role(db: Session, role: str) -> list[User]:
    with store_errors(db, "list users"):
        return db.query(User).filter(User.role == role).order_by(User.created_at.asc()).all()


def list_students_by_course(db: Session, course: str) -> list[User]:
    with store_errors(db, "list students by course"):
        return db.query(User).filter(
            User.role == STUDENT_ROLE,
            User.course == course,
        ).order_by(User.full_name.asc()).all()


def count_users(db: Session, role: str | None = None) -> int:
    with store_errors(db, "count users"):
        query = db.query(func.count(User.id))
        if role is not None:
            query = query.filter(User.role == role)
        return query.scalar() or 0


def _ensure_unique_identity(db: Session, username: str, email: str, exclude_id: str | None = None) -> None:
    query = db.query(User).filter(or_(User.username == username, User.email == email))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    existing = query.first()
    if existing is None:
        return
    raise DuplicateIdentity("username" if existing.username == username else "email")


def _commit_identity(db: Session, username: str, email: str, exclude_id: str | None = None) -> None:
    # A concurrent writer can take the username or email between the check and the commit.
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        _ensure_unique_identity(db, username, email, exclude_id=exclude_id)
        raise


def create_user(
    db: Session,
    *,
    username: str,
    email: str,
    password: str,
    role: str = STUDENT_ROLE,
    full_name: str | None = None,
    course: str | None = None,
    user_id: str | None = None,
) -> User:
    username = username.strip()
    email = normalize_email(email)

    with store_errors(db, "create user"):
        _ensure_unique_identity(db, username, email)
        user = User(
            username=username,
            email=email,
            hashed_password=hash_password(password),
            role=role,
            full_name=full_name,
            course=course,
            absences=0,
            tests=[],
        )
        if user_id:
            user.id = user_id
        db.add(user)
        _commit_identity(db, username, email)
        db.refresh(user)

    logger.info("Created %s account %s.", role, user.id)
    return user


def update_user(db: Session, user_id: str, updates: dict) -> User:
    with store_errors(db, "update user"):
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFound("User not found.")

        changes = {key: value for key, value in updates.items() if key in EDITABLE_FIELDS and value is not None}
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
        if "username" in changes:
            changes["username"] = changes["username"].strip()
        username = changes.get("username", user.username)
        email = changes.get("email", user.email)
        if "username" in changes or "email" in changes:
            _ensure_unique_identity(db, username, email, exclude_id=user_id)

        for key, value in changes.items():
            setattr(user, key, value)
        if updates.get("password"):
            user.hashed_password = hash_password(updates["password"])
        user.updated_at = utcnow()

        _commit_identity(db, username, email, exclude_id=user_id)
        db.refresh(user)
        return user


def update_user_password(db: Session, email: str, password: str) -> None:
    with store_errors(db, "update password"):
        updated = db.query(User).filter(User.email == normalize_email(email)).update(
            {User.hashed_password: hash_password(password), User.updated_at: utcnow()},
            synchronize_session=False,
        )
        if not updated:
            db.rollback()
            raise NotFound("User not found.")
        db.commit()


def delete_user(db: Session, user_id: str) -> None:
    with store_errors(db, "delete user"):
        deleted = db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
        if not deleted:
            db.rollback()
            raise NotFound("User not found.")
        db.commit()


def authenticate(db: Session, login: str, password: str) -> User:
    user = find_user_by_login(db, login)
    if user is None:
        raise InvalidCredentials()

    matches, needs_rehash = verify_password(password or "", user.hashed_password)
    if not matches:
        raise InvalidCredentials()

    if needs_rehash:
        with store_errors(db, "upgrade password hash"):
            user.hashed_password = hash_password(password)
            db.commit()
            db.refresh(user)
        logger.info("Upgraded stored password for user %s.", user.id)

    return user


def ensure_default_admin(db: Session) -> User:
    with store_errors(db, "check for an admin account"):
        existing = db.query(User).filter(User.role == ADMIN_ROLE).first()
    if existing is not None:
        logger.info("Admin user already exists.")
        return existing

    password = config.DEFAULT_ADMIN_PASSWORD or DEVELOPMENT_ADMIN_PASSWORD
    admin = create_user(
        db,
        user_id=DEFAULT_ADMIN_ID,
        username=DEFAULT_ADMIN_USERNAME,
        email=DEFAULT_ADMIN_EMAIL,
        password=password,
        role=ADMIN_ROLE,
        full_name="System Administrator",
    )
    if not config.DEFAULT_ADMIN_PASSWORD:
        logger.warning("Default admin created with the development password. Change it before deploying.")
    return admin
