"""
Team messaging.

Two kinds of conversation live under a team:

- direct: exactly two participants, at most one thread per pair per team
- announcement: no participant list, every team member can see it; only
  owners and coaches can start one

Unread state is derived from a per-user read receipt holding the time the
user last looked at a conversation. A conversation is unread when its latest
message is newer than the receipt, or when there is no receipt at all.
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..errors import Unauthenticated, NotFound, Forbidden, ValidationFailed
from ..identity import CallerIdentity
from ..models import (
    Conversation,
    ConversationType,
    Message,
    MessageReadReceipt,
    TeamRole,
)
from .access import (
    AccessLevel,
    enforce_access,
    list_team_roles,
    list_user_teams,
    resolve_role,
    verify_team_access,
)
from .directory import resolve_users, display_name

logger = logging.getLogger(__name__)


def _clean_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationFailed("Message cannot be empty")
    return content


def can_see_conversation(conversation: Conversation, user_id: int) -> bool:
    if conversation.type == ConversationType.direct:
        return user_id in conversation.participant_ids
    return True


def get_latest_message(db: Session, conversation_id: int) -> Optional[Message]:
    statement = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
    )
    return db.exec(statement).first()


def get_read_receipt(db: Session, conversation_id: int, user_id: int) -> Optional[MessageReadReceipt]:
    statement = select(MessageReadReceipt).where(
        MessageReadReceipt.conversation_id == conversation_id,
        MessageReadReceipt.user_id == user_id
    )
    return db.exec(statement).first()


def has_unread(db: Session, conversation_id: int, user_id: int, latest: Optional[Message]) -> bool:
    if latest is None:
        return False
    receipt = get_read_receipt(db, conversation_id, user_id)
    return receipt is None or receipt.last_read_at < latest.created_at


def _touch_read_receipt(db: Session, conversation_id: int, user_id: int, read_at: datetime) -> MessageReadReceipt:
    receipt = get_read_receipt(db, conversation_id, user_id)
    if receipt:
        receipt.last_read_at = read_at
    else:
        receipt = MessageReadReceipt(conversation_id=conversation_id, user_id=user_id, last_read_at=read_at)
    db.add(receipt)
    return receipt


def _append_message(db: Session, conversation: Conversation, sender_id: int, content: str, now: datetime) -> Message:
    message = Message(
        conversation_id=conversation.id,
        team_id=conversation.team_id,
        sender_id=sender_id,
        content=content,
        created_at=now
    )
    db.add(message)
    conversation.last_message_at = now
    db.add(conversation)
    # Senders have read their own message
    _touch_read_receipt(db, conversation.id, sender_id, now)
    return message


def _participants(db: Session, conversation: Conversation) -> List[dict]:
    users = resolve_users(db, conversation.participant_ids)
    return [{"id": user_id, "name": users[user_id]["name"]} for user_id in conversation.participant_ids]


def _conversation_fields(conversation: Conversation) -> dict:
    return {
        "id": conversation.id,
        "team_id": conversation.team_id,
        "type": conversation.type,
        "participant_ids": list(conversation.participant_ids),
        "title": conversation.title,
        "last_message_at": conversation.last_message_at,
        "created_at": conversation.created_at,
    }


# ---------------------------------------------------------------------------
# Scans kept behind their own functions so an indexed version can replace them
# ---------------------------------------------------------------------------

def find_direct_conversation(db: Session, team_id: int, user_a: int, user_b: int) -> Optional[Conversation]:
    """Find the direct thread between two users on a team, if there is one."""
    pair = sorted([user_a, user_b])
    statement = select(Conversation).where(
        Conversation.team_id == team_id,
        Conversation.type == ConversationType.direct
    )
    for conversation in db.exec(statement).all():
        if sorted(conversation.participant_ids) == pair:
            return conversation
    return None


def count_unread_conversations(db: Session, user_id: int, team_ids: Sequence[int]) -> int:
    unread = 0
    for team_id in team_ids:
        conversations = db.exec(select(Conversation).where(Conversation.team_id == team_id)).all()
        for conversation in conversations:
            if not can_see_conversation(conversation, user_id):
                continue
            latest = get_latest_message(db, conversation.id)
            if has_unread(db, conversation.id, user_id, latest):
                unread += 1
    return unread


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_team_conversations(db: Session, caller: Optional[CallerIdentity], team_id: int) -> List[dict]:
    """
    Every conversation on the team, most recently active first.

    Direct threads between other members are listed too, but without a
    preview of their latest message and never as unread.
    """
    access = verify_team_access(db, caller, team_id)
    if access is None:
        return []

    conversations = db.exec(select(Conversation).where(Conversation.team_id == team_id)).all()

    enriched = []
    for conversation in conversations:
        visible = can_see_conversation(conversation, access.user_id)
        latest = get_latest_message(db, conversation.id) if visible else None
        last_message = None
        if latest:
            last_message = {
                "content": latest.content,
                "sender_name": display_name(db, latest.sender_id),
                "created_at": latest.created_at,
            }

        enriched.append({
            **_conversation_fields(conversation),
            "participants": _participants(db, conversation),
            "last_message": last_message,
            "has_unread": has_unread(db, conversation.id, access.user_id, latest),
        })

    return sorted(enriched, key=lambda c: c["last_message_at"], reverse=True)


def get_conversation(db: Session, caller: Optional[CallerIdentity], conversation_id: int) -> Optional[dict]:
    if caller is None:
        return None

    conversation = db.get(Conversation, conversation_id)
    if not conversation:
        return None

    access = verify_team_access(db, caller, conversation.team_id)
    if access is None or not can_see_conversation(conversation, caller.user_id):
        return None

    return {
        **_conversation_fields(conversation),
        "participants": _participants(db, conversation),
        "current_user_id": caller.user_id,
    }


def get_conversation_messages(db: Session, caller: Optional[CallerIdentity], conversation_id: int) -> List[dict]:
    """Messages of a conversation, oldest first."""
    if caller is None:
        return []

    conversation = db.get(Conversation, conversation_id)
    if not conversation:
        return []

    access = verify_team_access(db, caller, conversation.team_id)
    if access is None or not can_see_conversation(conversation, caller.user_id):
        return []

    messages = db.exec(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at, Message.id)
    ).all()
    senders = resolve_users(db, (message.sender_id for message in messages))

    return [
        {
            "id": message.id,
            "conversation_id": message.conversation_id,
            "team_id": message.team_id,
            "sender_id": message.sender_id,
            "content": message.content,
            "created_at": message.created_at,
            "edited_at": message.edited_at,
            "sender_name": senders[message.sender_id]["name"],
            "is_own": message.sender_id == caller.user_id,
        }
        for message in messages
    ]


def get_unread_count(db: Session, caller: Optional[CallerIdentity]) -> int:
    """Number of visible conversations with unread messages, across all the caller's teams."""
    if caller is None:
        return 0

    teams = list_user_teams(db, caller.user_id)
    return count_unread_conversations(db, caller.user_id, [team.id for team, _ in teams])


def get_team_members_for_messaging(db: Session, caller: Optional[CallerIdentity], team_id: int) -> List[dict]:
    """Possible recipients: every team member except the caller, sorted by name."""
    access = verify_team_access(db, caller, team_id)
    if access is None:
        return []

    members = [
        (user_id, role)
        for user_id, role in list_team_roles(db, access.team)
        if user_id != access.user_id
    ]
    users = resolve_users(db, (user_id for user_id, _ in members))

    recipients = [
        {
            "user_id": user_id,
            "name": users[user_id]["name"],
            "email": users[user_id]["email"],
            "role": role,
        }
        for user_id, role in members
    ]
    return sorted(recipients, key=lambda r: r["name"].lower())


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_conversation(
    db: Session,
    caller: Optional[CallerIdentity],
    team_id: int,
    conversation_type: ConversationType,
    participant_ids: List[int],
    initial_message: str,
    title: Optional[str] = None
) -> Conversation:
    """
    Start a conversation with its first message.

    A direct message to someone the caller already has a thread with on this
    team goes into that thread instead of opening a second one.
    """
    conversation_type = ConversationType(conversation_type)
    access = enforce_access(db, caller, team_id, AccessLevel.read, "Not authorized to access this team")
    if conversation_type == ConversationType.announcement:
        enforce_access(db, caller, team_id, AccessLevel.modify, "Only coaches can create announcements")

    content = _clean_content(initial_message)
    now = datetime.utcnow()

    if conversation_type == ConversationType.direct:
        others = {user_id for user_id in participant_ids if user_id != access.user_id}
        if len(others) != 1:
            raise ValidationFailed("Direct messages need exactly one other recipient")
        (recipient_id,) = others
        if resolve_role(db, access.team, recipient_id) is None:
            raise ValidationFailed("Recipient is not a member of this team")

        existing = find_direct_conversation(db, team_id, access.user_id, recipient_id)
        if existing:
            _append_message(db, existing, access.user_id, content, now)
            db.commit()
            db.refresh(existing)
            return existing

        conversation = Conversation(
            team_id=team_id,
            type=conversation_type,
            participant_ids=[access.user_id, recipient_id],
            last_message_at=now,
            created_at=now
        )
    else:
        conversation = Conversation(
            team_id=team_id,
            type=conversation_type,
            participant_ids=[],
            title=(title or "").strip() or None,
            last_message_at=now,
            created_at=now
        )

    db.add(conversation)
    db.flush()
    _append_message(db, conversation, access.user_id, content, now)
    db.commit()
    db.refresh(conversation)

    logger.info("User %s started %s conversation %s on team %s",
                access.user_id, conversation_type.value, conversation.id, team_id)
    return conversation


def send_message(
    db: Session,
    caller: Optional[CallerIdentity],
    conversation_id: int,
    content: str
) -> Message:
    if caller is None:
        raise Unauthenticated()

    conversation = db.get(Conversation, conversation_id)
    if not conversation:
        raise NotFound("Conversation not found")

    enforce_access(db, caller, conversation.team_id, AccessLevel.read, "Not authorized to access this team")
    if not can_see_conversation(conversation, caller.user_id):
        raise Forbidden("Not a participant in this conversation")

    message = _append_message(db, conversation, caller.user_id, _clean_content(content), datetime.utcnow())
    db.commit()
    db.refresh(message)
    return message


def edit_message(
    db: Session,
    caller: Optional[CallerIdentity],
    message_id: int,
    content: str
) -> Message:
    if caller is None:
        raise Unauthenticated()

    message = db.get(Message, message_id)
    if not message:
        raise NotFound("Message not found")

    if message.sender_id != caller.user_id:
        raise Forbidden("Can only edit your own messages")

    message.content = _clean_content(content)
    message.edited_at = datetime.utcnow()
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def delete_message(db: Session, caller: Optional[CallerIdentity], message_id: int) -> None:
    """Senders delete their own messages; the team owner may delete any."""
    if caller is None:
        raise Unauthenticated()

    message = db.get(Message, message_id)
    if not message:
        raise NotFound("Message not found")

    access = enforce_access(db, caller, message.team_id, AccessLevel.read, "Not authorized")
    if message.sender_id != caller.user_id and access.role != TeamRole.owner:
        raise Forbidden("Can only delete your own messages")

    if message.sender_id != caller.user_id:
        logger.info("Owner %s removed message %s on team %s", caller.user_id, message_id, message.team_id)

    db.delete(message)
    db.commit()


def mark_as_read(db: Session, caller: Optional[CallerIdentity], conversation_id: int) -> MessageReadReceipt:
    if caller is None:
        raise Unauthenticated()

    conversation = db.get(Conversation, conversation_id)
    if not conversation:
        raise NotFound("Conversation not found")

    enforce_access(db, caller, conversation.team_id, AccessLevel.read, "Not authorized")

    receipt = _touch_read_receipt(db, conversation_id, caller.user_id, datetime.utcnow())
    try:
        db.commit()
    except IntegrityError:
        # Another request created the receipt first; bump that one instead
        db.rollback()
        receipt = _touch_read_receipt(db, conversation_id, caller.user_id, datetime.utcnow())
        db.commit()

    db.refresh(receipt)
    return receipt
