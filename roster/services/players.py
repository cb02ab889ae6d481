from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlmodel import Session, select

from ..errors import Unauthenticated, NotFound, ValidationFailed
from ..identity import CallerIdentity
from ..models import Player, Assessment
from .access import AccessLevel, enforce_access, verify_team_access

MIN_RATING = 1
MAX_RATING = 5


def _assessments_newest_first(db: Session, player_id: int) -> List[Assessment]:
    return db.exec(
        select(Assessment)
        .where(Assessment.player_id == player_id)
        .order_by(Assessment.date.desc(), Assessment.created_at.desc())
    ).all()


def get_team_players(db: Session, caller: Optional[CallerIdentity], team_id: int) -> List[dict]:
    """Players on a team, each with their assessment history."""
    if verify_team_access(db, caller, team_id) is None:
        return []

    players = db.exec(
        select(Player).where(Player.team_id == team_id).order_by(Player.name)
    ).all()

    return [
        {
            **player.model_dump(),
            "assessments": [a.model_dump() for a in _assessments_newest_first(db, player.id)],
        }
        for player in players
    ]


def create_player(
    db: Session,
    caller: Optional[CallerIdentity],
    team_id: int,
    name: str,
    jersey_number: str = "",
    position: str = ""
) -> Player:
    enforce_access(db, caller, team_id, AccessLevel.modify, "Only owners and coaches can add players")

    name = name.strip()
    if not name:
        raise ValidationFailed("Player name is required")

    now = datetime.utcnow()
    player = Player(
        team_id=team_id,
        name=name,
        jersey_number=jersey_number.strip(),
        position=position.strip(),
        created_at=now,
        updated_at=now
    )
    db.add(player)
    db.commit()
    db.refresh(player)
    return player


def _load_player(db: Session, caller: Optional[CallerIdentity], player_id: int) -> Player:
    if caller is None:
        raise Unauthenticated()

    player = db.get(Player, player_id)
    if not player:
        raise NotFound("Player not found")
    return player


def delete_player(db: Session, caller: Optional[CallerIdentity], player_id: int) -> None:
    """Delete a player together with all of their assessments."""
    player = _load_player(db, caller, player_id)
    enforce_access(db, caller, player.team_id, AccessLevel.modify, "Only owners and coaches can remove players")

    for assessment in _assessments_newest_first(db, player_id):
        db.delete(assessment)
    db.flush()

    db.delete(player)
    db.commit()


def create_assessment(
    db: Session,
    caller: Optional[CallerIdentity],
    player_id: int,
    date: str,
    overall_rating: float,
    evaluator: str = "",
    ratings: Optional[Dict[str, Any]] = None,
    notes: Optional[Dict[str, Any]] = None
) -> Assessment:
    player = _load_player(db, caller, player_id)
    enforce_access(db, caller, player.team_id, AccessLevel.modify, "Only owners and coaches can record assessments")

    if not MIN_RATING <= overall_rating <= MAX_RATING:
        raise ValidationFailed(f"Overall rating must be between {MIN_RATING} and {MAX_RATING}")

    assessment = Assessment(
        player_id=player.id,
        team_id=player.team_id,
        date=date,
        evaluator=evaluator.strip(),
        ratings=ratings or {},
        notes=notes or {},
        overall_rating=overall_rating
    )
    db.add(assessment)
    db.commit()
    db.refresh(assessment)
    return assessment
