import os

import pytest
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from app import create_app
from app.models import db
from app.models.mission import Mission
from app.models.operator import Operator
from app.models.place import Place
from app.models.user import User
from app.services.auth_service import ROLE_OPERATOR, ROLE_USER, issue_token


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_ENGINE_OPTIONS": {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            },
        }
    )

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(app):
    user = User(username="explorer", email="explorer@example.com", exp=0)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def operator(app):
    operator = Operator(email="op@example.com", password_hash="x")
    db.session.add(operator)
    db.session.commit()
    return operator


def _auth(principal, role=ROLE_USER):
    return {"Authorization": f"Bearer {issue_token(principal.id, role)}"}


def _mission(**fields):
    fields.setdefault("name", "Mission")
    fields.setdefault("reward_exp", 10)
    fields.setdefault("categories", ["museum"])
    mission = Mission(**fields)
    db.session.add(mission)
    db.session.commit()
    return mission


def test_catalog_lists_all_missions(client, user):
    first = _mission(name="First")
    second = _mission(name="Second")

    response = client.get("/api/v1/missions", headers=_auth(user))

    assert response.status_code == 200
    assert [item["id"] for item in response.get_json()] == [first.id, second.id]


def test_activate_mission(client, user):
    mission = _mission()

    response = client.post(
        "/api/v1/missions/activate", json={"missionId": mission.id}, headers=_auth(user)
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["missionProgress"] == {
        "missionId": mission.id,
        "requiredPlacesVisited": [],
        "progress": 0,
        "completed": False,
    }

    available = client.get("/api/v1/missions/available", headers=_auth(user)).get_json()
    assert available == []


def test_activate_twice_conflicts(client, user):
    mission = _mission()
    client.post("/api/v1/missions/activate", json={"missionId": mission.id}, headers=_auth(user))

    response = client.post(
        "/api/v1/missions/activate", json={"missionId": mission.id}, headers=_auth(user)
    )

    assert response.status_code == 409
    assert response.get_json()["error"] == "mission_already_active"
    assert len(db.session.get(User, user.id).missions_progresses) == 1


@pytest.mark.parametrize(
    "payload, status, code",
    [
        ({}, 400, "missing_mission_id"),
        ({"missionId": "x"}, 400, "invalid_mission_id"),
        ({"missionId": "²"}, 400, "invalid_mission_id"),
        ([1], 400, "missing_mission_id"),
        ({"missionId": 999}, 404, "mission_not_found"),
    ],
)
def test_activate_rejections(client, user, payload, status, code):
    response = client.post("/api/v1/missions/activate", json=payload, headers=_auth(user))

    assert response.status_code == status
    assert response.get_json()["error"] == code


def test_activate_requires_level(client, user):
    mission = _mission(min_level=2)

    response = client.post(
        "/api/v1/missions/activate", json={"missionId": mission.id}, headers=_auth(user)
    )

    assert response.status_code == 403
    body = response.get_json()
    assert body["error"] == "level_too_low"
    assert body["requiredLevel"] == 2


def test_remove_mission(client, user):
    mission = _mission()
    client.post("/api/v1/missions/activate", json={"missionId": mission.id}, headers=_auth(user))

    response = client.delete(f"/api/v1/missions/{mission.id}", headers=_auth(user))
    assert response.status_code == 200
    assert db.session.get(User, user.id).missions_progresses == {}

    response = client.delete(f"/api/v1/missions/{mission.id}", headers=_auth(user))
    assert response.status_code == 404


def test_operator_creates_mission_and_catalog_refreshes(client, user, operator):
    place = Place(name="Castello", normalized_name="castello", categories=["castle"], lat=45.0, lon=7.0)
    db.session.add(place)
    db.session.commit()

    assert client.get("/api/v1/missions", headers=_auth(user)).get_json() == []

    response = client.post(
        "/api/v1/missions",
        json={
            "name": "Castles",
            "rewardExp": 25,
            "requiredPlaces": [{"placeId": place.id}],
            "requiredCount": 1,
        },
        headers=_auth(operator, ROLE_OPERATOR),
    )

    assert response.status_code == 201
    mission = response.get_json()["mission"]
    assert mission["requiredPlaces"] == [{"placeId": place.id}]
    assert mission["rewardExp"] == 25

    catalog = client.get("/api/v1/missions", headers=_auth(user)).get_json()
    assert [item["name"] for item in catalog] == ["Castles"]


def test_create_mission_rejects_unknown_places(client, operator):
    response = client.post(
        "/api/v1/missions",
        json={"name": "Ghosts", "rewardExp": 5, "requiredPlaces": [404]},
        headers=_auth(operator, ROLE_OPERATOR),
    )

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "unknown_places"
    assert body["placeIds"] == [404]


def test_create_mission_requires_criteria(client, operator):
    response = client.post(
        "/api/v1/missions",
        json={"name": "Empty", "rewardExp": 5},
        headers=_auth(operator, ROLE_OPERATOR),
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "missing_criteria"


def test_users_cannot_create_missions(client, user):
    response = client.post(
        "/api/v1/missions",
        json={"name": "Castles", "rewardExp": 25, "categories": ["castle"]},
        headers=_auth(user),
    )

    assert response.status_code == 401
    assert response.get_json()["error"] == "invalid_token"
