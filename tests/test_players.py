import pytest
from sqlmodel import select

from roster.errors import Unauthenticated, NotFound, Forbidden, ValidationFailed
from roster.identity import CallerIdentity
from roster.models import Assessment, Player, TeamRole
from roster.services import players as player_service
from roster.services import teams as team_service


def as_caller(user) -> CallerIdentity:
    return CallerIdentity(user_id=user.id)


@pytest.fixture(name="roster")
def roster_fixture(session, make_user):
    owner = make_user("Owner")
    viewer = make_user("Parent")
    team = team_service.create_team(session, as_caller(owner), "U10 Lions")
    code = team_service.get_invite_code(session, as_caller(owner), team.id)["invite_code"]
    team_service.join_team(session, as_caller(viewer), code, TeamRole.viewer)
    return {"team": team, "owner": owner, "viewer": viewer}


def test_create_and_list_players(session, roster):
    owner, team = roster["owner"], roster["team"]

    player_service.create_player(session, as_caller(owner), team.id, "  Zoe ", "7", "Forward")
    player_service.create_player(session, as_caller(owner), team.id, "Ava", "3", "Keeper")

    players = player_service.get_team_players(session, as_caller(roster["viewer"]), team.id)
    assert [p["name"] for p in players] == ["Ava", "Zoe"]
    assert players[1]["jersey_number"] == "7"
    assert players[0]["assessments"] == []


def test_viewer_cannot_add_players(session, roster):
    with pytest.raises(Forbidden):
        player_service.create_player(session, as_caller(roster["viewer"]), roster["team"].id, "Sam")


def test_player_name_required(session, roster):
    with pytest.raises(ValidationFailed):
        player_service.create_player(session, as_caller(roster["owner"]), roster["team"].id, "   ")


def test_outsiders_see_no_players(session, roster, make_user):
    player_service.create_player(session, as_caller(roster["owner"]), roster["team"].id, "Sam")

    assert player_service.get_team_players(session, as_caller(make_user()), roster["team"].id) == []
    assert player_service.get_team_players(session, None, roster["team"].id) == []


def test_assessments_newest_first(session, roster):
    owner = roster["owner"]
    player = player_service.create_player(session, as_caller(owner), roster["team"].id, "Sam")

    player_service.create_assessment(session, as_caller(owner), player.id, "2025-03-01", 3)
    player_service.create_assessment(
        session, as_caller(owner), player.id, "2025-05-01", 4.5,
        evaluator="Coach Kim", ratings={"dribbling": 4}, notes={"general": "Big improvement"}
    )

    players = player_service.get_team_players(session, as_caller(owner), roster["team"].id)
    history = players[0]["assessments"]
    assert [a["date"] for a in history] == ["2025-05-01", "2025-03-01"]
    assert history[0]["ratings"] == {"dribbling": 4}
    assert history[0]["evaluator"] == "Coach Kim"


def test_assessment_rating_bounds(session, roster):
    owner = roster["owner"]
    player = player_service.create_player(session, as_caller(owner), roster["team"].id, "Sam")

    with pytest.raises(ValidationFailed):
        player_service.create_assessment(session, as_caller(owner), player.id, "2025-03-01", 0)
    with pytest.raises(ValidationFailed):
        player_service.create_assessment(session, as_caller(owner), player.id, "2025-03-01", 5.5)


def test_viewer_cannot_record_assessments(session, roster):
    player = player_service.create_player(session, as_caller(roster["owner"]), roster["team"].id, "Sam")

    with pytest.raises(Forbidden):
        player_service.create_assessment(session, as_caller(roster["viewer"]), player.id, "2025-03-01", 3)


def test_delete_player_removes_assessments(session, roster):
    owner = roster["owner"]
    player = player_service.create_player(session, as_caller(owner), roster["team"].id, "Sam")
    keeper = player_service.create_player(session, as_caller(owner), roster["team"].id, "Ava")
    player_service.create_assessment(session, as_caller(owner), player.id, "2025-03-01", 3)
    player_service.create_assessment(session, as_caller(owner), keeper.id, "2025-03-01", 4)

    player_service.delete_player(session, as_caller(owner), player.id)

    assert session.get(Player, player.id) is None
    remaining = session.exec(select(Assessment)).all()
    assert [a.player_id for a in remaining] == [keeper.id]


def test_delete_player_errors(session, roster):
    player = player_service.create_player(session, as_caller(roster["owner"]), roster["team"].id, "Sam")

    with pytest.raises(Unauthenticated):
        player_service.delete_player(session, None, player.id)
    with pytest.raises(NotFound):
        player_service.delete_player(session, as_caller(roster["owner"]), 9999)
    with pytest.raises(Forbidden):
        player_service.delete_player(session, as_caller(roster["viewer"]), player.id)
