"""
Team access control.

A caller's role on a team comes from their membership row. Teams created
before memberships existed only carry the owner's id as a raw string, so that
field is the fallback source of ownership. This module is the only place that
fallback is consulted.

Three gates of increasing strictness sit on top of the role lookup:

- verify_team_access: any role (owner, coach, viewer)
- verify_team_modify_access: owner or coach
- verify_team_owner: owner only

The gates return None when the caller is anonymous, the team does not exist
or the role is insufficient. Mutations use `enforce_access`, which turns those
cases into Unauthenticated, NotFound and Forbidden respectively.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union
from sqlmodel import Session, select

from ..errors import Unauthenticated, NotFound, Forbidden
from ..identity import CallerIdentity
from ..models import Team, TeamMembership, TeamRole


@dataclass(frozen=True)
class MembershipGrant:
    membership: TeamMembership


@dataclass(frozen=True)
class LegacyOwnerField:
    raw_id: str


OwnershipSource = Union[MembershipGrant, LegacyOwnerField]


@dataclass(frozen=True)
class TeamAccess:
    user_id: int
    role: TeamRole
    team: Team
    source: OwnershipSource


class AccessLevel(str, Enum):
    read = "read"
    modify = "modify"
    owner = "owner"


MODIFY_ROLES = (TeamRole.owner, TeamRole.coach)


def get_membership_row(db: Session, team_id: int, user_id: int) -> Optional[TeamMembership]:
    statement = select(TeamMembership).where(
        TeamMembership.team_id == team_id,
        TeamMembership.user_id == user_id
    )
    return db.exec(statement).first()


def resolve_role(db: Session, team: Team, user_id: int) -> Optional[Tuple[TeamRole, OwnershipSource]]:
    """Work out a user's role on a team, or None if they have no access."""
    membership = get_membership_row(db, team.id, user_id)
    if membership:
        return membership.role, MembershipGrant(membership)

    if team.legacy_owner_id is not None and team.legacy_owner_id == str(user_id):
        return TeamRole.owner, LegacyOwnerField(team.legacy_owner_id)

    return None


def legacy_owner_user_id(db: Session, team: Team) -> Optional[int]:
    """The legacy owner's id, unless a membership row already speaks for them."""
    raw = team.legacy_owner_id
    if raw is None or not raw.isdigit():
        return None
    user_id = int(raw)
    if get_membership_row(db, team.id, user_id):
        return None
    return user_id


def list_team_roles(db: Session, team: Team) -> List[Tuple[int, TeamRole]]:
    """Everyone with a role on the team, including an owner known only from the legacy field."""
    roles = [
        (membership.user_id, membership.role)
        for membership in db.exec(
            select(TeamMembership).where(TeamMembership.team_id == team.id)
        ).all()
    ]
    legacy_owner = legacy_owner_user_id(db, team)
    if legacy_owner is not None:
        roles.append((legacy_owner, TeamRole.owner))
    return roles


def list_user_teams(db: Session, user_id: int) -> List[Tuple[Team, TeamRole]]:
    """Every team the user has a role on, membership rows first."""
    teams = []
    memberships = db.exec(select(TeamMembership).where(TeamMembership.user_id == user_id)).all()
    for membership in memberships:
        team = db.get(Team, membership.team_id)
        if team:
            teams.append((team, membership.role))

    legacy = db.exec(select(Team).where(Team.legacy_owner_id == str(user_id))).all()
    for team in legacy:
        if legacy_owner_user_id(db, team) == user_id:
            teams.append((team, TeamRole.owner))
    return teams


def verify_team_access(
    db: Session,
    caller: Optional[CallerIdentity],
    team_id: int
) -> Optional[TeamAccess]:
    if caller is None:
        return None

    team = db.get(Team, team_id)
    if not team:
        return None

    resolved = resolve_role(db, team, caller.user_id)
    if resolved is None:
        return None

    role, source = resolved
    return TeamAccess(user_id=caller.user_id, role=role, team=team, source=source)


def verify_team_modify_access(
    db: Session,
    caller: Optional[CallerIdentity],
    team_id: int
) -> Optional[TeamAccess]:
    access = verify_team_access(db, caller, team_id)
    if access is None or access.role not in MODIFY_ROLES:
        return None
    return access


def verify_team_owner(
    db: Session,
    caller: Optional[CallerIdentity],
    team_id: int
) -> Optional[TeamAccess]:
    access = verify_team_access(db, caller, team_id)
    if access is None or access.role != TeamRole.owner:
        return None
    return access


_GATES = {
    AccessLevel.read: verify_team_access,
    AccessLevel.modify: verify_team_modify_access,
    AccessLevel.owner: verify_team_owner,
}


def enforce_access(
    db: Session,
    caller: Optional[CallerIdentity],
    team_id: int,
    level: AccessLevel,
    denied_message: str
) -> TeamAccess:
    """Run one gate and raise the matching error when it refuses."""
    if caller is None:
        raise Unauthenticated()

    access = _GATES[level](db, caller, team_id)
    if access is not None:
        return access

    if db.get(Team, team_id) is None:
        raise NotFound("Team not found")
    raise Forbidden(denied_message)
