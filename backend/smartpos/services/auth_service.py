# Overview: Service-layer operations for auth; password hashing, user creation and login.

"""
Authentication Service

WHY: Every sale and stock movement must be attributable to a user. Uses
bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ValidationError
from ..models import User, active_scope
from ..permissions import Role
from ..time_utils import utcnow
from .concurrency import resolve_session, unit_of_work


# Accounts created by `flask system init`; passwords must be changed after first login
DEFAULT_USERS = (
    ("admin", "Admin123!", "System Administrator", Role.ADMIN),
    ("manager", "Manager123!", "Store Manager", Role.MANAGER),
    ("cashier", "Cashier123!", "Front Cashier", Role.CASHIER),
)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    username: str,
    password: str,
    full_name: str | None = None,
    role=Role.CASHIER,
    session=None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: blank username, unknown role or weak password
        ConflictError: username already taken
    """
    session = resolve_session(session)

    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    try:
        role = Role.parse(role)
    except ValueError as exc:
        raise ValidationError(str(exc))

    if session.query(User).filter_by(username=username).first():
        raise ConflictError("Username already exists")

    password_hash = hash_password(password)

    try:
        with unit_of_work(session):
            user = User(
                username=username,
                password_hash=password_hash,
                full_name=(full_name or "").strip() or None,
                role=role,
                is_active=True,
            )
            session.add(user)
    except IntegrityError:
        raise ConflictError("Username already exists")
    return user


def authenticate(username: str, password: str, session=None) -> User | None:
    """
    Authenticate user with username and password.

    Returns User if credentials valid, None otherwise. Deactivated users
    cannot log in. Updates last_login_at on success.
    """
    session = resolve_session(session)
    query = active_scope(
        session.query(User).filter(User.username == (username or "").strip()),
        User,
        include_inactive=False,
    )
    user = query.first()
    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    with unit_of_work(session):
        user.last_login_at = utcnow()
    return user


def list_users(*, include_inactive: bool, session=None) -> list[User]:
    session = resolve_session(session)
    query = active_scope(session.query(User), User, include_inactive=include_inactive)
    return query.order_by(User.username.asc()).all()


def ensure_default_users(session=None) -> list[User]:
    """Create the default admin/manager/cashier accounts that don't exist yet."""
    session = resolve_session(session)
    created = []
    for username, password, full_name, role in DEFAULT_USERS:
        if session.query(User).filter_by(username=username).first():
            continue
        created.append(create_user(username, password, full_name, role, session=session))
    return created
