# Overview: Service-layer operations for staff accounts and password checks.

"""
Authentication Service

Passwords are hashed with bcrypt (cost factor 12). Accounts carry a Role
from the static role table; the numeric level is derived from it so the
two can never disagree.
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..permissions import Role
from ..time_utils import utcnow


BCRYPT_ROUNDS = 12


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """Minimum 8 characters with at least one letter and one digit."""
    if len(password or "") < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe via bcrypt.checkpw. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    email: str,
    password: str,
    role=Role.CASHIER,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """
    Raises:
        ValueError: email already registered or unknown role
        PasswordValidationError: weak password
    """
    email = (email or "").strip().lower()
    if not email:
        raise ValueError("Email is required")

    if db.session.query(User).filter_by(email=email).first():
        raise ValueError("Email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
    )
    user.set_role(role)

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """Return the active user for these credentials and stamp last_login_at."""
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
