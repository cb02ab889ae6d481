from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from ..database import get_session
from ..dependencies import get_caller, require_caller
from ..identity import CallerIdentity
from ..models import TeamRole
from ..services import teams as team_service

router = APIRouter(prefix="/api", tags=["teams"])


class TeamCreate(BaseModel):
    """Schema for creating a team."""
    name: str = Field(min_length=1, max_length=100)
    evaluator: str = Field(default="", max_length=100)


class TeamUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    evaluator: str = Field(default="", max_length=100)


class JoinRequest(BaseModel):
    """Schema for redeeming an invite code."""
    invite_code: str = Field(max_length=32)
    role: Optional[TeamRole] = None


class RoleUpdate(BaseModel):
    role: TeamRole


class TeamResponse(BaseModel):
    id: int
    name: str
    evaluator: str
    team_code: str
    created_at: datetime
    updated_at: datetime
    member_role: TeamRole


class MemberResponse(BaseModel):
    id: int
    team_id: int
    user_id: int
    role: TeamRole
    joined_at: datetime
    invited_by: Optional[int] = None
    user_name: str
    user_email: str


class MembershipResponse(BaseModel):
    id: int
    team_id: int
    user_id: int
    role: TeamRole
    joined_at: datetime
    invited_by: Optional[int] = None


class InviteCodeResponse(BaseModel):
    invite_code: str
    invite_code_created_at: Optional[datetime] = None


class JoinResponse(BaseModel):
    team_id: int
    team_name: str


# Queries

@router.get("/teams", response_model=List[TeamResponse])
async def get_my_teams(
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    """Teams the caller belongs to, with their role on each."""
    return team_service.get_my_teams(db, caller)


@router.get("/teams/{team_id}", response_model=Optional[TeamResponse])
async def get_team(
    team_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return team_service.get_team(db, caller, team_id)


@router.get("/teams/{team_id}/membership", response_model=Optional[MembershipResponse])
async def get_membership(
    team_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return team_service.get_membership(db, caller, team_id)


@router.get("/teams/{team_id}/members", response_model=List[MemberResponse])
async def get_team_members(
    team_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    return team_service.get_team_members(db, caller, team_id)


@router.get("/teams/{team_id}/invite-code", response_model=Optional[InviteCodeResponse])
async def get_invite_code(
    team_id: int,
    db: Session = Depends(get_session),
    caller: Optional[CallerIdentity] = Depends(get_caller)
):
    """The current invite code. Only the owner gets to see it."""
    return team_service.get_invite_code(db, caller, team_id)


# Mutations

@router.post("/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    payload: TeamCreate,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    team = team_service.create_team(db, caller, payload.name, payload.evaluator)
    return team_service.team_summary(team, TeamRole.owner)


@router.put("/teams/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: int,
    payload: TeamUpdate,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    team_service.update_team(db, caller, team_id, payload.name, payload.evaluator)
    return team_service.get_team(db, caller, team_id)


@router.delete("/teams/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team(
    team_id: int,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    team_service.delete_team(db, caller, team_id)


@router.post("/teams/{team_id}/invite-code")
async def generate_invite_code(
    team_id: int,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    """Issue a new invite code; the previous one stops working."""
    return team_service.generate_invite_code(db, caller, team_id)


@router.post("/teams/join", response_model=JoinResponse)
async def join_team(
    payload: JoinRequest,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    return team_service.join_team(db, caller, payload.invite_code, payload.role)


@router.delete("/teams/{team_id}/members/{member_id}")
async def remove_member(
    team_id: int,
    member_id: int,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    team_service.remove_member(db, caller, team_id, member_id)
    return {"success": True}


@router.patch("/members/{member_id}", response_model=MembershipResponse)
async def update_member_role(
    member_id: int,
    payload: RoleUpdate,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    return team_service.update_member_role(db, caller, member_id, payload.role)


@router.post("/teams/{team_id}/leave")
async def leave_team(
    team_id: int,
    db: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_caller)
):
    team_service.leave_team(db, caller, team_id)
    return {"success": True}
