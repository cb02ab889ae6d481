"""
Local stand-in for the external identity provider.

Passwords are bcrypt hashed. Login hands out an opaque session token that
clients send back as a cookie or a bearer header.
"""
import logging
import secrets
import bcrypt
from datetime import datetime, timedelta
from typing import Optional
from sqlmodel import Session, select

from .config import SESSION_EXPIRE_DAYS
from .models import User, Session as SessionModel

logger = logging.getLogger(__name__)

# bcrypt ignores everything past this many bytes
BCRYPT_MAX_BYTES = 72
SESSION_TOKEN_BYTES = 32


def _password_bytes(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode('utf-8'))


def _find_session(db: Session, session_token: str) -> Optional[SessionModel]:
    statement = select(SessionModel).where(SessionModel.session_token == session_token)
    return db.exec(statement).first()


def purge_expired_sessions(db: Session, user_id: int) -> int:
    """Drop a user's expired sessions. The caller commits."""
    expired = db.exec(
        select(SessionModel).where(
            SessionModel.user_id == user_id,
            SessionModel.expires_at < datetime.utcnow()
        )
    ).all()
    for stale in expired:
        db.delete(stale)
    return len(expired)


def create_session(db: Session, user_id: int) -> SessionModel:
    """Start a session for a user, clearing out any of theirs that have expired."""
    purged = purge_expired_sessions(db, user_id)
    if purged:
        logger.debug("Purged %s expired sessions for user %s", purged, user_id)

    session = SessionModel(
        user_id=user_id,
        session_token=secrets.token_urlsafe(SESSION_TOKEN_BYTES),
        expires_at=datetime.utcnow() + timedelta(days=SESSION_EXPIRE_DAYS)
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def get_user_id_by_session_token(db: Session, session_token: str) -> Optional[int]:
    """Resolve a session token to its user id, or None if unknown or expired."""
    session = _find_session(db, session_token)
    if not session:
        return None

    if session.expires_at < datetime.utcnow():
        db.delete(session)
        db.commit()
        return None

    return session.user_id


def delete_session(db: Session, session_token: str) -> bool:
    """End a session on logout. Returns whether there was one to end."""
    session = _find_session(db, session_token)
    if not session:
        return False

    db.delete(session)
    db.commit()
    return True


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Check an email and password pair, returning the user on success."""
    statement = select(User).where(User.email == email.strip().lower())
    user = db.exec(statement).first()

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        logger.info("Failed login for user %s", user.id)
        return None

    return user
