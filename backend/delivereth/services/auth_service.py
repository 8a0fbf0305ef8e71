# Overview: Service-layer operations for accounts; encapsulates business logic and database work.

"""
Account and Authentication Service

WHY: Every order, status change and receipt must be attributable to a
marketplace account. Uses bcrypt for password hashing and validates
password strength at creation time.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
- Deactivated accounts cannot authenticate
"""

import re

import bcrypt

from ..extensions import db
from ..models import User, USER_TYPES
from delivereth.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountError(ValueError):
    """Raised when an account cannot be created (duplicate username, bad type)."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost factor 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def get_user_by_username(username: str) -> User | None:
    return db.session.query(User).filter_by(username=username).first()


def get_users_by_type(user_type: str, *, active_only: bool = True) -> list[User]:
    query = db.session.query(User).filter(User.user_type == user_type)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.id).all()


def create_user(
    *,
    username: str,
    password: str,
    email: str,
    name: str,
    phone: str,
    user_type: str,
    business_name: str | None = None,
    tin: str | None = None,
    address: str | None = None,
    is_vat_registered: bool = False,
) -> User:
    """
    Create a new account with a bcrypt password hash.

    Raises:
        AccountError: unknown user_type or username already taken
        PasswordValidationError: password doesn't meet requirements
    """
    if user_type not in USER_TYPES:
        raise AccountError(f"user_type must be one of: {', '.join(USER_TYPES)}")

    if get_user_by_username(username):
        raise AccountError("Username already exists")

    password_hash = hash_password(password)

    user = User(
        username=username,
        password_hash=password_hash,
        email=email,
        name=name,
        phone=phone,
        user_type=user_type,
        business_name=business_name,
        tin=tin,
        address=address,
        is_vat_registered=bool(is_vat_registered),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username (or email) and password.

    Returns the User and stamps last_login_at on success, None otherwise.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
