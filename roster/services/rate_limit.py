import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from sqlmodel import Session, select, func

from ..config import JOIN_RATE_LIMIT_WINDOW_MINUTES, JOIN_RATE_LIMIT_MAX_ATTEMPTS
from ..models import JoinAttempt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitVerdict:
    allowed: bool
    message: Optional[str] = None
    retry_after_seconds: Optional[int] = None


def count_recent_join_attempts(db: Session, user_id: int, since: datetime) -> int:
    statement = select(func.count(JoinAttempt.id)).where(
        JoinAttempt.user_id == user_id,
        JoinAttempt.attempted_at >= since
    )
    return db.exec(statement).one()


def check_join_rate_limit(db: Session, user_id: int) -> RateLimitVerdict:
    """
    Decide whether a user may try another invite code.

    Every logged attempt inside the trailing window counts, failed ones
    included, so guessing codes runs into the limit quickly.
    """
    window = timedelta(minutes=JOIN_RATE_LIMIT_WINDOW_MINUTES)
    recent = count_recent_join_attempts(db, user_id, datetime.utcnow() - window)

    if recent >= JOIN_RATE_LIMIT_MAX_ATTEMPTS:
        logger.warning("Join rate limit hit for user %s (%s recent attempts)", user_id, recent)
        return RateLimitVerdict(
            allowed=False,
            message=f"Too many attempts. Please wait {JOIN_RATE_LIMIT_WINDOW_MINUTES} minutes.",
            retry_after_seconds=int(window.total_seconds())
        )

    return RateLimitVerdict(allowed=True)


def log_join_attempt(db: Session, user_id: int, success: bool) -> JoinAttempt:
    """Append one attempt to the log. The caller commits."""
    attempt = JoinAttempt(user_id=user_id, success=success)
    db.add(attempt)
    return attempt
