from typing import Dict, Iterable
from sqlmodel import Session, select

from ..models import User

UNKNOWN_NAME = "Unknown"


def resolve_users(db: Session, user_ids: Iterable[int]) -> Dict[int, dict]:
    """Map user ids to display info. Ids with no user get a placeholder."""
    ids = set(user_ids)
    found = {}
    if ids:
        users = db.exec(select(User).where(User.id.in_(ids))).all()
        found = {user.id: user for user in users}

    return {
        user_id: {
            "name": found[user_id].display_name if user_id in found else UNKNOWN_NAME,
            "email": found[user_id].email if user_id in found else "",
        }
        for user_id in ids
    }


def display_name(db: Session, user_id: int) -> str:
    user = db.get(User, user_id)
    return user.display_name if user else UNKNOWN_NAME
