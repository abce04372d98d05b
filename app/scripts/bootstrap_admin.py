"""
One-time creation of the first ADMIN user.

Admins confirm payouts paid through external providers, so a fresh
deployment needs one before bank_transfer / paypal / stripe payouts can
settle. Registration only hands out MENTOR and MENTEE.

Usage:
  ENABLE_ADMIN_BOOTSTRAP=true \
  ADMIN_BOOTSTRAP_CONFIRM=CREATE-FIRST-ADMIN \
  ADMIN_NAME="Ops" ADMIN_EMAIL="ops@example.com" ADMIN_PASSWORD="..." \
  python -m app.scripts.bootstrap_admin
"""

import logging
import os
import re
import sys
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app import models
from app.crud import user as user_crud
from app.database import SessionLocal
from app.models.user import Role

logger = logging.getLogger(__name__)

CONFIRM_PHRASE = "CREATE-FIRST-ADMIN"
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _required_env(environ, key: str) -> str:
    value = (environ.get(key) or "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {key}")
    return value


def _validate_password(password: str) -> None:
    if len(password) < 8:
        raise ValueError("ADMIN_PASSWORD must be at least 8 characters.")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("ADMIN_PASSWORD must be <= 72 bytes (bcrypt limit).")
    if not re.search(r"[A-Z]", password) or not re.search(r"[a-z]", password):
        raise ValueError("ADMIN_PASSWORD must mix upper and lower case letters.")
    if not re.search(r"\d", password):
        raise ValueError("ADMIN_PASSWORD must contain at least one digit.")


def _admin_exists(db) -> bool:
    # roles is a JSON list; checked in Python.
    return any(user.has_role(Role.ADMIN) for user in db.query(models.User).all())


def bootstrap_admin(environ=os.environ) -> int:
    try:
        if not _is_truthy(environ.get("ENABLE_ADMIN_BOOTSTRAP")):
            raise ValueError("Bootstrap disabled. Set ENABLE_ADMIN_BOOTSTRAP=true to run.")
        if environ.get("ADMIN_BOOTSTRAP_CONFIRM", "").strip() != CONFIRM_PHRASE:
            raise ValueError(
                f"Invalid ADMIN_BOOTSTRAP_CONFIRM. Expected exact phrase: {CONFIRM_PHRASE}"
            )

        name = _required_env(environ, "ADMIN_NAME")
        email = _required_env(environ, "ADMIN_EMAIL").lower()
        password = _required_env(environ, "ADMIN_PASSWORD")
        if not EMAIL_RE.match(email):
            raise ValueError("ADMIN_EMAIL is not a valid email format.")
        _validate_password(password)

        db = SessionLocal()
        try:
            if _admin_exists(db):
                raise ValueError(
                    "Admin bootstrap blocked: an admin already exists. "
                    "This command is one-time for first admin creation."
                )
            if user_crud.get_user_by_email(db, email):
                raise ValueError("ADMIN_EMAIL is already registered.")

            user_crud.create_user(db, name=name, email=email, password=password, roles=[Role.ADMIN.value])
            logger.info("Admin user %s created", email)
            print(f"Admin created successfully: {email}")
            return 0
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()
    except (ValueError, SQLAlchemyError) as exc:
        print(f"Admin bootstrap failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(bootstrap_admin())
