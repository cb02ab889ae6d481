from datetime import datetime
from enum import Enum
from typing import Optional
from sqlalchemy import Index
from sqlmodel import SQLModel, Field, UniqueConstraint


class TeamRole(str, Enum):
    owner = "owner"
    coach = "coach"
    viewer = "viewer"


class Team(SQLModel, table=True):
    __tablename__ = "teams"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, max_length=100)
    evaluator: str = Field(default="", max_length=100)
    # Display code, not secret and not unique (e.g. "EAGLES2025")
    team_code: str = Field(default="", index=True, max_length=32)
    invite_code: Optional[str] = Field(default=None, unique=True, index=True, max_length=16)
    invite_code_created_at: Optional[datetime] = None
    # Owner id stored as a raw string by teams created before memberships existed
    legacy_owner_id: Optional[str] = Field(default=None, index=True, max_length=64)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class TeamMembership(SQLModel, table=True):
    __tablename__ = "team_memberships"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="unique_team_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="teams.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    role: TeamRole = Field(default=TeamRole.coach)
    invited_by: Optional[int] = Field(default=None, foreign_key="users.id")
    joined_at: datetime = Field(default_factory=datetime.utcnow)


class JoinAttempt(SQLModel, table=True):
    """Append-only log of invite code redemptions, successful or not."""
    __tablename__ = "join_attempts"
    __table_args__ = (Index("ix_join_attempts_user_attempted", "user_id", "attempted_at"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id")
    attempted_at: datetime = Field(default_factory=datetime.utcnow)
    success: bool = Field(default=False)
