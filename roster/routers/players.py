import datetime as dt
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from ..database import get_session
from ..dependencies import get_caller, require_caller
from ..identity import CallerIdentity
from ..services import players as player_service

router = APIRouter(prefix="/api", tags=["players"])


class PlayerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    jersey_number: str = Field(default="", max_length=10)
    position: str = Field(default="", max_length=50)


class AssessmentCreate(BaseModel):
    """Ratings and notes are keyed by skill name and stored as given."""
    date: dt.date
    overall_rating: float
    evaluator: str = Field(default="", max_length=100)
    ratings: Dict[str, Any] = Field(default_factory=dict)
    notes: Dict[str, Any] = Field(default_factory=dict)


@router.get("/teams/{team_id}/players")
async def get_team_players(
    team_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return player_service.get_team_players(db, caller, team_id)


@router.post("/teams/{team_id}/players", status_code=status.HTTP_201_CREATED)
async def create_player(
    team_id: int,
    payload: PlayerCreate,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    return player_service.create_player(
        db, caller, team_id, payload.name, payload.jersey_number, payload.position
    )


@router.delete("/players/{player_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_player(
    player_id: int,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    player_service.delete_player(db, caller, player_id)


@router.post("/players/{player_id}/assessments", status_code=status.HTTP_201_CREATED)
async def create_assessment(
    player_id: int,
    payload: AssessmentCreate,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    return player_service.create_assessment(
        db,
        caller,
        player_id,
        payload.date.isoformat(),
        payload.overall_rating,
        evaluator=payload.evaluator,
        ratings=payload.ratings,
        notes=payload.notes
    )
