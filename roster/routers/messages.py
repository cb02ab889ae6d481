from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from ..database import get_session
from ..dependencies import get_caller, require_caller
from ..identity import CallerIdentity
from ..models import ConversationType, TeamRole
from ..services import messaging

router = APIRouter(prefix="/api", tags=["messages"])


class ConversationCreate(BaseModel):
    """Schema for starting a conversation with its first message."""
    type: ConversationType
    participant_ids: List[int] = Field(default_factory=list)
    title: Optional[str] = Field(default=None, max_length=200)
    initial_message: str = Field(min_length=1, max_length=5000)


class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class Participant(BaseModel):
    id: int
    name: str


class LastMessage(BaseModel):
    content: str
    sender_name: str
    created_at: datetime


class ConversationSummary(BaseModel):
    id: int
    team_id: int
    type: ConversationType
    participant_ids: List[int]
    title: Optional[str] = None
    last_message_at: datetime
    created_at: datetime
    participants: List[Participant]
    last_message: Optional[LastMessage] = None
    has_unread: bool


class ConversationDetail(BaseModel):
    id: int
    team_id: int
    type: ConversationType
    participant_ids: List[int]
    title: Optional[str] = None
    last_message_at: datetime
    created_at: datetime
    participants: List[Participant]
    current_user_id: int


class MessageResponse(BaseModel):
    id: int
    conversation_id: int
    team_id: int
    sender_id: int
    content: str
    created_at: datetime
    edited_at: Optional[datetime] = None


class ConversationMessage(MessageResponse):
    sender_name: str
    is_own: bool


class Recipient(BaseModel):
    user_id: int
    name: str
    email: str
    role: TeamRole


# Queries

@router.get("/teams/{team_id}/conversations", response_model=List[ConversationSummary])
async def get_team_conversations(
    team_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return messaging.get_team_conversations(db, caller, team_id)


@router.get("/teams/{team_id}/messaging-members", response_model=List[Recipient])
async def get_team_members_for_messaging(
    team_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return messaging.get_team_members_for_messaging(db, caller, team_id)


@router.get("/messages/unread-count")
async def get_unread_count(
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return {"count": messaging.get_unread_count(db, caller)}


@router.get("/conversations/{conversation_id}", response_model=Optional[ConversationDetail])
async def get_conversation(
    conversation_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return messaging.get_conversation(db, caller, conversation_id)


@router.get("/conversations/{conversation_id}/messages", response_model=List[ConversationMessage])
async def get_conversation_messages(
    conversation_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return messaging.get_conversation_messages(db, caller, conversation_id)


# Mutations

@router.post("/teams/{team_id}/conversations", status_code=status.HTTP_201_CREATED)
async def create_conversation(
    team_id: int,
    payload: ConversationCreate,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    conversation = messaging.create_conversation(
        db,
        caller,
        team_id,
        payload.type,
        payload.participant_ids,
        payload.initial_message,
        title=payload.title
    )
    return {"conversation_id": conversation.id}


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED
)
async def send_message(
    conversation_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    return messaging.send_message(db, caller, conversation_id, payload.content)


@router.post("/conversations/{conversation_id}/read")
async def mark_as_read(
    conversation_id: int,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    receipt = messaging.mark_as_read(db, caller, conversation_id)
    return {"last_read_at": receipt.last_read_at}


@router.patch("/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    return messaging.edit_message(db, caller, message_id, payload.content)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: int,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    messaging.delete_message(db, caller, message_id)
