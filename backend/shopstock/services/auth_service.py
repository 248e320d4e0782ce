# Overview: Service-layer operations for auth; password hashing, user creation and login.

"""
Authentication Service

Every stock movement is attributed to a user. Passwords are hashed with
bcrypt (cost factor 12); session tokens live in session_service.py.

Password rules: at least 8 characters with a letter and a digit.
"""

import re

import bcrypt
from sqlalchemy import func, or_

from ..extensions import db
from ..models import User
from ..models.auth import ROLES, ROLE_STAFF
from ..errors import ConflictError, InvalidInputError
from ..time_utils import utcnow


class PasswordValidationError(InvalidInputError):
    """Raised when a password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe check. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    *,
    name: str | None = None,
    role: str = ROLE_STAFF,
    phone: str | None = None,
    rounds: int = 12,
) -> User:
    """
    Create an active user.

    Raises InvalidInputError for a weak password or unknown role and
    ConflictError when the username or email is taken.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise InvalidInputError("username and email are required")
    if role not in ROLES:
        raise InvalidInputError(f"role must be one of {', '.join(ROLES)}")

    existing = db.session.query(User).filter(
        or_(User.username == username, func.lower(User.email) == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        name=(name or "").strip() or username,
        phone=phone,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(login: str, password: str) -> User | None:
    """
    Look up an active user by username or email and check the password.

    Returns None on any mismatch; callers must not reveal which part failed.
    """
    login = (login or "").strip()
    if not login or not password:
        return None

    user = db.session.query(User).filter(
        or_(User.username == login, func.lower(User.email) == login.lower())
    ).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
