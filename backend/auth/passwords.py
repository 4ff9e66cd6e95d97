import hmac

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Modular crypt format ("$id$..."). Stored values in this form are hashes, never plaintext.
CRYPT_PREFIX = "$"


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def is_password_hash(stored: str | None) -> bool:
    return bool(stored) and pwd_context.identify(stored) is not None


def is_legacy_plaintext(stored: str | None) -> bool:
    return bool(stored) and not stored.startswith(CRYPT_PREFIX)


def verify_password(plain: str, stored: str | None) -> tuple[bool, bool]:
    """Check ``plain`` against a stored password.

    Returns ``(matches, needs_rehash)``. Records created before hashing was
    introduced hold the password itself; those match by constant-time
    comparison and always need a rehash. A hash from a scheme this context
    does not know never matches.
    """
    if not stored:
        return False, False

    if not is_password_hash(stored):
        if not is_legacy_plaintext(stored):
            return False, False
        matches = hmac.compare_digest(plain.encode("utf-8"), stored.encode("utf-8"))
        return matches, matches

    if not pwd_context.verify(plain, stored):
        return False, False
    return True, pwd_context.needs_update(stored)
