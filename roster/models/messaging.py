from datetime import datetime
from enum import Enum
from typing import Optional, List
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field, UniqueConstraint


class ConversationType(str, Enum):
    direct = "direct"
    announcement = "announcement"


class Conversation(SQLModel, table=True):
    __tablename__ = "conversations"

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="teams.id", index=True)
    type: ConversationType
    # Exactly two user ids for direct conversations, empty for announcements
    participant_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    title: Optional[str] = Field(default=None, max_length=200)
    last_message_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Message(SQLModel, table=True):
    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key="conversations.id", index=True)
    team_id: int = Field(foreign_key="teams.id", index=True)
    sender_id: int = Field(foreign_key="users.id")
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    edited_at: Optional[datetime] = None


class MessageReadReceipt(SQLModel, table=True):
    __tablename__ = "message_read_receipts"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="unique_conversation_reader"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key="conversations.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    last_read_at: datetime = Field(default_factory=datetime.utcnow)
