from datetime import datetime
from typing import Optional, Dict, Any
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Player(SQLModel, table=True):
    __tablename__ = "players"

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="teams.id", index=True)
    name: str = Field(max_length=100)
    jersey_number: str = Field(default="", max_length=10)
    position: str = Field(default="", max_length=50)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Assessment(SQLModel, table=True):
    __tablename__ = "assessments"

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: int = Field(foreign_key="players.id", index=True)
    team_id: int = Field(foreign_key="teams.id", index=True)
    date: str = Field(max_length=10)  # ISO date, e.g. "2025-03-14"
    evaluator: str = Field(default="", max_length=100)
    ratings: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    notes: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    overall_rating: float
    created_at: datetime = Field(default_factory=datetime.utcnow)
