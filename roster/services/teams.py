"""
Teams and team membership.

Every team has exactly one owner membership from the moment it is created.
Nothing here can remove, demote or add an owner afterwards. Other members
arrive by redeeming the team's invite code and leave on their own or are
removed by the owner.
"""
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..codes import generate_secure_code, normalize_invite_code, derive_team_code
from ..config import INVITE_CODE_MAX_ATTEMPTS
from ..errors import (
    Unauthenticated,
    NotFound,
    InvariantViolation,
    ValidationFailed,
    RateLimited,
    UniquenessExhausted,
)
from ..identity import CallerIdentity
from ..models import (
    Team,
    TeamMembership,
    TeamRole,
    Player,
    Assessment,
    Conversation,
    Message,
    MessageReadReceipt,
)
from .access import (
    AccessLevel,
    enforce_access,
    get_membership_row,
    list_user_teams,
    resolve_role,
    verify_team_access,
    verify_team_owner,
)
from .directory import resolve_users
from .rate_limit import check_join_rate_limit, log_join_attempt

logger = logging.getLogger(__name__)

JOINABLE_ROLES = (TeamRole.coach, TeamRole.viewer)


def team_summary(team: Team, role: TeamRole) -> dict:
    """Public view of a team. The invite code is left out on purpose."""
    return {
        "id": team.id,
        "name": team.name,
        "evaluator": team.evaluator,
        "team_code": team.team_code,
        "created_at": team.created_at,
        "updated_at": team.updated_at,
        "member_role": role,
    }


def find_team_by_invite_code(db: Session, code: str) -> Optional[Team]:
    return db.exec(select(Team).where(Team.invite_code == code)).first()


def issue_unique_invite_code(db: Session) -> str:
    """Draw codes until one is not in use, giving up after a bounded number of tries."""
    for _ in range(INVITE_CODE_MAX_ATTEMPTS):
        code = normalize_invite_code(generate_secure_code())
        if find_team_by_invite_code(db, code) is None:
            return code

    logger.error("No free invite code after %s attempts", INVITE_CODE_MAX_ATTEMPTS)
    raise UniquenessExhausted("Failed to generate unique code. Please try again.")


def _invite_code_collision(db: Session) -> UniquenessExhausted:
    # A concurrent writer took the same code between the check and the write
    db.rollback()
    logger.warning("Invite code collided at write time")
    return UniquenessExhausted("Failed to generate unique code. Please try again.")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_membership(db: Session, caller: Optional[CallerIdentity], team_id: int) -> Optional[TeamMembership]:
    if caller is None:
        return None
    return get_membership_row(db, team_id, caller.user_id)


def get_team(db: Session, caller: Optional[CallerIdentity], team_id: int) -> Optional[dict]:
    access = verify_team_access(db, caller, team_id)
    if access is None:
        return None
    return team_summary(access.team, access.role)


def get_team_members(db: Session, caller: Optional[CallerIdentity], team_id: int) -> List[dict]:
    access = verify_team_access(db, caller, team_id)
    if access is None:
        return []

    members = db.exec(
        select(TeamMembership)
        .where(TeamMembership.team_id == team_id)
        .order_by(TeamMembership.joined_at)
    ).all()
    users = resolve_users(db, (member.user_id for member in members))

    return [
        {
            "id": member.id,
            "team_id": member.team_id,
            "user_id": member.user_id,
            "role": member.role,
            "joined_at": member.joined_at,
            "invited_by": member.invited_by,
            "user_name": users[member.user_id]["name"],
            "user_email": users[member.user_id]["email"],
        }
        for member in members
    ]


def get_my_teams(db: Session, caller: Optional[CallerIdentity]) -> List[dict]:
    if caller is None:
        return []

    return [team_summary(team, role) for team, role in list_user_teams(db, caller.user_id)]


def get_invite_code(db: Session, caller: Optional[CallerIdentity], team_id: int) -> Optional[dict]:
    access = verify_team_owner(db, caller, team_id)
    if access is None or not access.team.invite_code:
        return None
    return {
        "invite_code": access.team.invite_code,
        "invite_code_created_at": access.team.invite_code_created_at,
    }


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_team(
    db: Session,
    caller: Optional[CallerIdentity],
    name: str,
    evaluator: str = ""
) -> Team:
    if caller is None:
        raise Unauthenticated()

    name = name.strip()
    if not name:
        raise ValidationFailed("Team name is required")

    now = datetime.utcnow()
    team = Team(
        name=name,
        evaluator=(evaluator or "").strip(),
        team_code=derive_team_code(name, now),
        invite_code=issue_unique_invite_code(db),
        invite_code_created_at=now,
        created_at=now,
        updated_at=now
    )
    db.add(team)
    try:
        db.flush()
        db.add(TeamMembership(
            team_id=team.id,
            user_id=caller.user_id,
            role=TeamRole.owner,
            joined_at=now
        ))
        db.commit()
    except IntegrityError:
        raise _invite_code_collision(db)
    db.refresh(team)

    logger.info("User %s created team %s", caller.user_id, team.id)
    return team


def update_team(
    db: Session,
    caller: Optional[CallerIdentity],
    team_id: int,
    name: str,
    evaluator: str
) -> Team:
    access = enforce_access(
        db, caller, team_id, AccessLevel.modify,
        "Only team owners and coaches can update teams"
    )

    name = name.strip()
    if not name:
        raise ValidationFailed("Team name is required")

    team = access.team
    team.name = name
    team.evaluator = evaluator.strip()
    team.updated_at = datetime.utcnow()
    db.add(team)
    db.commit()
    db.refresh(team)
    return team


def delete_team(db: Session, caller: Optional[CallerIdentity], team_id: int) -> None:
    """Delete a team and everything that hangs off it."""
    access = enforce_access(db, caller, team_id, AccessLevel.owner, "Only team owners can delete teams")

    # No foreign key cascade in the store, so dependents go first
    dependents = [
        select(TeamMembership).where(TeamMembership.team_id == team_id),
        select(Assessment).where(Assessment.team_id == team_id),
        select(Player).where(Player.team_id == team_id),
        select(MessageReadReceipt).where(
            MessageReadReceipt.conversation_id.in_(
                select(Conversation.id).where(Conversation.team_id == team_id)
            )
        ),
        select(Message).where(Message.team_id == team_id),
        select(Conversation).where(Conversation.team_id == team_id),
    ]
    for statement in dependents:
        for row in db.exec(statement).all():
            db.delete(row)
        db.flush()

    db.delete(access.team)
    db.commit()

    logger.info("User %s deleted team %s", access.user_id, team_id)


def generate_invite_code(db: Session, caller: Optional[CallerIdentity], team_id: int) -> dict:
    """Replace the team's invite code. The old code stops working immediately."""
    access = enforce_access(
        db, caller, team_id, AccessLevel.owner,
        "Only team owners can generate invite codes"
    )

    team = access.team
    team.invite_code = issue_unique_invite_code(db)
    team.invite_code_created_at = datetime.utcnow()
    db.add(team)
    try:
        db.commit()
    except IntegrityError:
        raise _invite_code_collision(db)
    db.refresh(team)

    logger.info("Invite code regenerated for team %s", team_id)
    return {"code": team.invite_code}


def join_team(
    db: Session,
    caller: Optional[CallerIdentity],
    invite_code: str,
    role: Optional[TeamRole] = None
) -> dict:
    """
    Redeem an invite code.

    The rate limit is checked before the code is even looked up, and every
    attempt that gets past it is logged, whatever the outcome.
    """
    if caller is None:
        raise Unauthenticated()

    role = TeamRole(role or TeamRole.coach)
    if role not in JOINABLE_ROLES:
        raise ValidationFailed("Role must be coach or viewer")

    verdict = check_join_rate_limit(db, caller.user_id)
    if not verdict.allowed:
        raise RateLimited(verdict.message, verdict.retry_after_seconds)

    code = normalize_invite_code(invite_code)
    team = find_team_by_invite_code(db, code) if code else None
    if team is None:
        log_join_attempt(db, caller.user_id, success=False)
        db.commit()
        logger.info("User %s tried an invalid invite code", caller.user_id)
        raise NotFound("Invalid invite code")

    team_id, team_name = team.id, team.name
    # A legacy owner has no membership row but is already on the team
    if resolve_role(db, team, caller.user_id) is not None:
        log_join_attempt(db, caller.user_id, success=False)
        db.commit()
        raise InvariantViolation("You are already a member of this team")

    db.add(TeamMembership(team_id=team_id, user_id=caller.user_id, role=role))
    log_join_attempt(db, caller.user_id, success=True)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent join for the same user won the race
        db.rollback()
        log_join_attempt(db, caller.user_id, success=False)
        db.commit()
        raise InvariantViolation("You are already a member of this team")

    logger.info("User %s joined team %s as %s", caller.user_id, team_id, role.value)
    return {"team_id": team_id, "team_name": team_name}


def remove_member(
    db: Session,
    caller: Optional[CallerIdentity],
    team_id: int,
    member_id: int
) -> None:
    access = enforce_access(db, caller, team_id, AccessLevel.owner, "Only team owners can remove members")

    membership = db.get(TeamMembership, member_id)
    if not membership or membership.team_id != team_id:
        raise NotFound("Member not found")

    if membership.role == TeamRole.owner:
        raise InvariantViolation("Cannot remove the team owner")

    removed_user_id = membership.user_id
    db.delete(membership)
    db.commit()
    logger.info("User %s removed user %s from team %s", access.user_id, removed_user_id, team_id)


def update_member_role(
    db: Session,
    caller: Optional[CallerIdentity],
    member_id: int,
    role: TeamRole
) -> TeamMembership:
    if caller is None:
        raise Unauthenticated()

    membership = db.get(TeamMembership, member_id)
    if not membership:
        raise NotFound("Member not found")

    enforce_access(db, caller, membership.team_id, AccessLevel.owner, "Only team owners can update roles")

    if membership.role == TeamRole.owner:
        raise InvariantViolation("Cannot change the owner's role")
    role = TeamRole(role)
    if role not in JOINABLE_ROLES:
        raise InvariantViolation("A team can only have one owner")

    membership.role = role
    db.add(membership)
    db.commit()
    db.refresh(membership)

    logger.info("Membership %s on team %s changed to %s", member_id, membership.team_id, role.value)
    return membership


def leave_team(db: Session, caller: Optional[CallerIdentity], team_id: int) -> None:
    if caller is None:
        raise Unauthenticated()

    membership = get_membership_row(db, team_id, caller.user_id)
    if not membership:
        raise NotFound("You are not a member of this team")

    # TODO: let owners hand the team over once an ownership transfer operation exists
    if membership.role == TeamRole.owner:
        raise InvariantViolation("Team owners cannot leave. Transfer ownership or delete the team.")

    db.delete(membership)
    db.commit()
    logger.info("User %s left team %s", caller.user_id, team_id)


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

def backfill_legacy_teams(db: Session) -> List[str]:
    """
    Bring teams created before invite codes and memberships up to date.

    Teams without an invite code get one. A team that records its owner only
    in the legacy string field gets a proper owner membership; if the legacy
    owner already holds a lesser membership on an ownerless team, that row is
    promoted.
    """
    results = []

    try:
        for team in db.exec(select(Team)).all():
            if not team.invite_code:
                team.invite_code = issue_unique_invite_code(db)
                team.invite_code_created_at = datetime.utcnow()
                db.add(team)
                db.flush()
                results.append(f'Team "{team.name}": generated invite code')

            if not (team.legacy_owner_id and team.legacy_owner_id.isdigit()):
                continue

            owner_id = int(team.legacy_owner_id)
            has_owner = db.exec(
                select(TeamMembership).where(
                    TeamMembership.team_id == team.id,
                    TeamMembership.role == TeamRole.owner
                )
            ).first()
            if has_owner:
                continue

            membership = get_membership_row(db, team.id, owner_id)
            if membership:
                membership.role = TeamRole.owner
                db.add(membership)
                results.append(f'Team "{team.name}": promoted user {owner_id} back to owner')
            else:
                db.add(TeamMembership(
                    team_id=team.id,
                    user_id=owner_id,
                    role=TeamRole.owner,
                    joined_at=team.created_at
                ))
                results.append(f'Team "{team.name}": created owner membership for user {owner_id}')
            db.flush()

        db.commit()
    except IntegrityError:
        raise _invite_code_collision(db)

    return results or ["No legacy teams needed migration"]
