# Overview: Service-layer operations for session tokens; creation, validation and revocation.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS)
- Revocable on logout
- Tracks client IP and user agent
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..errors import NotFoundError
from ..models import SessionToken, User
from ..permissions import Role
from ..time_utils import utcnow
from .concurrency import resolve_session, unit_of_work


@dataclass
class SessionContext:
    """Authenticated identity for the current request."""
    user: User
    session: SessionToken
    role: Role


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 8))


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
    session=None,
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    db_session = resolve_session(session)
    user = db_session.get(User, user_id)
    if not user or not user.is_active:
        raise NotFoundError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    with unit_of_work(db_session):
        record = SessionToken(
            user_id=user.id,
            token_hash=hash_token(plaintext_token),
            created_at=now,
            last_used_at=now,
            expires_at=now + _absolute_timeout(),
            user_agent=(user_agent or "")[:255] or None,
            ip_address=(ip_address or "")[:64] or None,
            is_revoked=False,
        )
        db_session.add(record)

    return record, plaintext_token


def _revoke(record: SessionToken, reason: str, now) -> None:
    record.is_revoked = True
    record.revoked_at = now
    record.revoked_reason = reason


def validate_session(token: str | None, session=None) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is missing, unknown, expired, or revoked
    - Session sat idle longer than the idle timeout (auto-revoked)
    - User account is deactivated (auto-revoked)

    Updates last_used_at on successful validation.
    """
    if not token:
        return None

    db_session = resolve_session(session)
    now = utcnow()

    record = db_session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not record:
        return None

    if record.expires_at < now:
        return None

    with unit_of_work(db_session):
        if now - record.last_used_at > _idle_timeout():
            _revoke(record, "Idle timeout", now)
            return None

        user = record.user
        if not user or not user.is_active:
            _revoke(record, "User account deactivated", now)
            return None

        record.last_used_at = now

    return SessionContext(user=user, session=record, role=user.role)


def revoke_session(token: str | None, reason: str = "User logout", session=None) -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    if not token:
        return False

    db_session = resolve_session(session)
    record = db_session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not record:
        return False

    with unit_of_work(db_session):
        _revoke(record, reason, utcnow())
    return True
