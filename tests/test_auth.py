from datetime import datetime, timedelta
from sqlmodel import select

from roster.auth import (
    hash_password,
    verify_password,
    authenticate_user,
    create_session,
    get_user_id_by_session_token,
)
from roster.config import SESSION_COOKIE_NAME
from roster.models import User, Session as SessionModel


def test_password_hashing():
    password = "secure_password_123"
    hashed = hash_password(password)

    assert hashed != password
    assert isinstance(hashed, str)
    assert len(hashed) > 0


def test_password_verification():
    hashed = hash_password("secure_password_123")

    assert verify_password("secure_password_123", hashed) is True
    assert verify_password("wrong_password", hashed) is False


def test_password_long_truncation():
    # bcrypt only looks at the first 72 bytes
    hashed = hash_password("a" * 100)

    assert verify_password("a" * 100, hashed) is True
    assert verify_password("a" * 72, hashed) is True
    assert verify_password("b" * 72, hashed) is False


def test_authenticate_user(session):
    user = User(email="coach@example.com", password_hash=hash_password("goalkeeper"), display_name="Coach")
    session.add(user)
    session.commit()

    assert authenticate_user(session, " Coach@Example.com ", "goalkeeper").id == user.id
    assert authenticate_user(session, "coach@example.com", "striker") is None
    assert authenticate_user(session, "nobody@example.com", "goalkeeper") is None


def test_expired_session_is_discarded(session, make_user):
    user = make_user()
    user_session = create_session(session, user.id)
    assert get_user_id_by_session_token(session, user_session.session_token) == user.id

    user_session.expires_at = datetime.utcnow() - timedelta(minutes=1)
    session.add(user_session)
    session.commit()

    assert get_user_id_by_session_token(session, user_session.session_token) is None
    assert session.exec(select(SessionModel)).all() == []


def test_new_session_clears_expired_ones(session, make_user):
    user = make_user()
    other = make_user()
    stale = SessionModel(user_id=user.id, session_token="stale", expires_at=datetime.utcnow() - timedelta(days=1))
    other_stale = SessionModel(user_id=other.id, session_token="other", expires_at=datetime.utcnow() - timedelta(days=1))
    session.add(stale)
    session.add(other_stale)
    session.commit()

    fresh = create_session(session, user.id)

    tokens = set(session.exec(select(SessionModel.session_token)).all())
    assert tokens == {fresh.session_token, "other"}


def test_register_login_and_me(client):
    response = client.post("/auth/register", json={
        "email": "Parent@Example.com",
        "password": "secret123",
        "display_name": "Pat Parent"
    })
    assert response.status_code == 201
    assert response.json()["display_name"] == "Pat Parent"
    assert SESSION_COOKIE_NAME in response.cookies

    response = client.get("/auth/me")
    assert response.json()["email"] == "parent@example.com"

    client.cookies.clear()
    assert client.get("/auth/me").json() is None

    response = client.post("/auth/login", json={"email": "parent@example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["session_token"]

    # Bearer token works without the cookie
    client.cookies.clear()
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["display_name"] == "Pat Parent"


def test_register_validation(client, make_user):
    make_user()

    cases = [
        ({"email": "not-an-email", "password": "secret123", "display_name": "A"}, "Invalid email format"),
        ({"email": "user1@example.com", "password": "secret123", "display_name": "A"}, "Email already exists"),
        ({"email": "new@example.com", "password": "abc", "display_name": "A"}, "Password must be at least 6 characters"),
        ({"email": "new@example.com", "password": "x" * 73, "display_name": "A"}, "Password must be 72 characters or less"),
        ({"email": "new@example.com", "password": "secret123", "display_name": "  "}, "Display name is required"),
    ]
    for payload, detail in cases:
        response = client.post("/auth/register", json=payload)
        assert response.status_code == 400
        assert response.json()["detail"] == detail


def test_login_rejects_bad_password(client, session):
    session.add(User(email="coach@example.com", password_hash=hash_password("goalkeeper"), display_name="Coach"))
    session.commit()

    response = client.post("/auth/login", json={"email": "coach@example.com", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect email or password"


def test_logout_ends_session(client, session):
    client.post("/auth/register", json={
        "email": "coach@example.com",
        "password": "secret123",
        "display_name": "Coach"
    })
    assert client.get("/auth/me").json() is not None

    response = client.post("/auth/logout")
    assert response.json() == {"status": "success"}
    assert session.exec(select(SessionModel)).all() == []
    assert client.get("/auth/me").json() is None


def test_anonymous_reads_are_empty_but_writes_need_login(client):
    assert client.get("/api/teams").json() == []

    response = client.post("/api/teams", json={"name": "Eagles"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"
