from typing import Optional
from fastapi import Request, Depends
from sqlmodel import Session

from .auth import get_user_id_by_session_token
from .config import SESSION_COOKIE_NAME
from .database import get_session
from .errors import Unauthenticated
from .identity import CallerIdentity


def _session_token(request: Request) -> Optional[str]:
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token

    # Mobile clients send the token as a bearer header instead of a cookie
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()

    return None


async def get_caller(
    request: Request,
    db: Session = Depends(get_session)
) -> Optional[CallerIdentity]:
    """Get the calling user's identity from the session cookie or bearer token."""
    session_token = _session_token(request)
    if not session_token:
        return None

    user_id = get_user_id_by_session_token(db, session_token)
    if user_id is None:
        return None

    return CallerIdentity(user_id=user_id)


async def require_caller(
    caller: Optional[CallerIdentity] = Depends(get_caller)
) -> CallerIdentity:
    """Require an authenticated caller."""
    if caller is None:
        raise Unauthenticated()
    return caller
