"""Delete expired password recovery codes.

Expired codes are already rejected at verification time; this only keeps
the table small. Safe to run from cron.

Usage:
    python -m backend.sweep_expired_codes
"""
import logging
import sys

from backend.core.errors import UpstreamUnavailable
from backend.database import SessionLocal, ensure_credential_schema
from backend.services.otp_ledger import sweep_expired


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    ensure_credential_schema()

    db = SessionLocal()
    try:
        removed = sweep_expired(db)
    except UpstreamUnavailable:
        print("Database unavailable; no codes were removed.", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()
    print(f"Removed {removed} expired codes.")


if __name__ == "__main__":
    main()
