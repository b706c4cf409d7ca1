"""Visit validation, discovery recording and mission reconciliation."""

import os

import pytest
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from app import create_app
from app.models import db
from app.models.mission import Mission, MissionProgress
from app.models.place import Place
from app.models.user import User
from app.services.auth_service import ROLE_USER, issue_token
from app.services.mission_service import reconcile_missions
from app.services.visit_service import record_visit, trigger_visit


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


def _make_user(username="walker", exp=0):
    user = User(username=username, email=f"{username}@example.com", exp=exp)
    db.session.add(user)
    db.session.commit()
    return user


def _make_place(name, *, lat=45.0, lon=7.0, categories=None, is_free=True):
    place = Place(
        name=name,
        normalized_name=name.lower(),
        categories=categories or ["museum"],
        lat=lat,
        lon=lon,
        is_free=is_free,
    )
    db.session.add(place)
    db.session.commit()
    return place


def _make_mission(**fields):
    fields.setdefault("name", "Mission")
    fields.setdefault("reward_exp", 20)
    fields.setdefault("required_count", 1)
    mission = Mission(**fields)
    db.session.add(mission)
    db.session.commit()
    return mission


def _activate(user, mission_id):
    user.missions_progresses[mission_id] = MissionProgress(mission_id=mission_id)
    db.session.commit()


def _headers(user):
    return {"Authorization": f"Bearer {issue_token(user.id, ROLE_USER)}"}


def test_visit_at_place_coordinates_is_accepted(app, client):
    user = _make_user()
    place = _make_place("Castello")

    response = client.post(
        f"/api/v1/me/visit?placeId={place.id}",
        json={"lat": 45.0, "lon": 7.0},
        headers=_headers(user),
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["newlyDiscovered"] is True
    assert body["exp"] == 5

    user = db.session.get(User, user.id)
    assert list(user.discovered_places) == [place.id]


def test_visit_far_from_place_is_rejected(app, client):
    user = _make_user()
    place = _make_place("Castello")

    response = client.post(
        f"/api/v1/me/visit?placeId={place.id}",
        json={"lat": 46.0, "lon": 8.0},
        headers=_headers(user),
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "OutOfRange"
    user = db.session.get(User, user.id)
    assert user.discovered_places == {}
    assert user.exp == 0


def test_visit_just_outside_radius_is_rejected(app, client):
    user = _make_user()
    place = _make_place("Castello")

    # ~33 m north of the place
    response = client.post(
        f"/api/v1/me/visit?placeId={place.id}",
        json={"lat": 45.0003, "lon": 7.0},
        headers=_headers(user),
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "OutOfRange"

    # ~11 m north of the place
    response = client.post(
        f"/api/v1/me/visit?placeId={place.id}",
        json={"lat": 45.0001, "lon": 7.0},
        headers=_headers(user),
    )
    assert response.status_code == 200


@pytest.mark.parametrize(
    "query, body, code",
    [
        ("", {"lat": 45.0, "lon": 7.0}, "InvalidPlaceReference"),
        ("?placeId=abc", {"lat": 45.0, "lon": 7.0}, "InvalidPlaceReference"),
        ("?placeId=%C2%B2", {"lat": 45.0, "lon": 7.0}, "InvalidPlaceReference"),
        ("?placeId=1", {"lat": 45.0}, "InvalidCoordinates"),
        ("?placeId=1", {"lat": "north", "lon": 7.0}, "InvalidCoordinates"),
        ("?placeId=999", {"lat": 45.0, "lon": 7.0}, "PlaceNotFound"),
    ],
)
def test_visit_rejection_reasons(app, client, query, body, code):
    user = _make_user()
    _make_place("Castello")

    response = client.post(f"/api/v1/me/visit{query}", json=body, headers=_headers(user))

    assert response.status_code == 400
    assert response.get_json()["error"] == code


def test_visit_to_place_without_location_is_rejected(app, client):
    user = _make_user()
    place = _make_place("Nowhere", lat=None, lon=None)

    response = client.post(
        f"/api/v1/me/visit?placeId={place.id}",
        json={"lat": 45.0, "lon": 7.0},
        headers=_headers(user),
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "PlaceMissingLocation"


def test_repeated_place_id_uses_first_value(app, client):
    user = _make_user()
    place = _make_place("Castello")

    response = client.post(
        f"/api/v1/me/visit?placeId={place.id}&placeId=999",
        json={"lat": 45.0, "lon": 7.0},
        headers=_headers(user),
    )

    assert response.status_code == 200
    assert response.get_json()["placeId"] == place.id


def test_visit_with_non_object_body_is_rejected(app, client):
    user = _make_user()
    place = _make_place("Castello")

    response = client.post(
        f"/api/v1/me/visit?placeId={place.id}",
        json=[45.0, 7.0],
        headers=_headers(user),
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "InvalidCoordinates"
    assert db.session.get(User, user.id).discovered_places == {}


def test_visit_requires_authentication(app, client):
    place = _make_place("Castello")

    response = client.post(f"/api/v1/me/visit?placeId={place.id}", json={"lat": 45.0, "lon": 7.0})

    assert response.status_code == 401
    assert response.get_json()["error"] == "missing_authorization"


def test_place_based_mission_completes_after_all_places(app):
    user = _make_user()
    first = _make_place("Castello")
    second = _make_place("Duomo", lat=45.01)
    mission = _make_mission(
        required_places=[first.id, second.id], required_count=2, reward_exp=20
    )
    _activate(user, mission.id)

    outcome = trigger_visit(user, first.id, 45.0, 7.0)
    assert outcome.completed_missions == []
    progress = user.missions_progresses[mission.id]
    assert progress.progress == 1
    assert progress.completed is False

    outcome = trigger_visit(user, second.id, 45.01, 7.0)
    assert outcome.completed_missions == [mission.id]

    user = db.session.get(User, user.id)
    progress = user.missions_progresses[mission.id]
    assert progress.progress == 2
    assert progress.completed is True
    assert progress.completed_at is not None
    # two discovery bonuses plus the mission reward
    assert user.exp == 5 + 5 + 20


def test_revisiting_a_place_changes_nothing(app):
    user = _make_user()
    place = _make_place("Castello")
    mission = _make_mission(categories=["museum"], required_count=3, reward_exp=20)
    _activate(user, mission.id)

    first = trigger_visit(user, place.id, 45.0, 7.0)
    second = trigger_visit(user, place.id, 45.0, 7.0)

    assert first.newly_discovered is True
    assert second.newly_discovered is False
    user = db.session.get(User, user.id)
    assert user.exp == 5
    assert len(user.discovered_places) == 1
    assert user.missions_progresses[mission.id].progress == 1


def test_required_places_take_precedence_over_categories(app):
    user = _make_user()
    listed = _make_place("Castello", categories=["castle"])
    matching_category = _make_place("Museo", lat=45.01, categories=["museum"])
    mission = _make_mission(
        required_places=[listed.id], categories=["museum"], required_count=1
    )
    _activate(user, mission.id)

    outcome = trigger_visit(user, matching_category.id, 45.01, 7.0)
    assert outcome.completed_missions == []
    assert user.missions_progresses[mission.id].progress == 0

    outcome = trigger_visit(user, listed.id, 45.0, 7.0)
    assert outcome.completed_missions == [mission.id]


def test_category_mission_counts_matching_places(app):
    user = _make_user()
    museum = _make_place("Museo", categories=["museum", "art"])
    park = _make_place("Parco", lat=45.01, categories=["park"])
    mission = _make_mission(categories=["art"], required_count=1, reward_exp=15)
    _activate(user, mission.id)

    assert trigger_visit(user, park.id, 45.01, 7.0).completed_missions == []
    assert trigger_visit(user, museum.id, 45.0, 7.0).completed_missions == [mission.id]
    assert db.session.get(User, user.id).exp == 5 + 5 + 15


def test_completed_mission_is_not_rewarded_again(app):
    user = _make_user()
    first = _make_place("Castello", categories=["museum"])
    second = _make_place("Duomo", lat=45.01, categories=["museum"])
    mission = _make_mission(categories=["museum"], required_count=1, reward_exp=20)
    _activate(user, mission.id)

    trigger_visit(user, first.id, 45.0, 7.0)
    trigger_visit(user, second.id, 45.01, 7.0)

    user = db.session.get(User, user.id)
    progress = user.missions_progresses[mission.id]
    assert progress.completed is True
    assert progress.progress == 1
    assert user.exp == 5 + 20 + 5


def test_dangling_mission_is_skipped(app):
    user = _make_user()
    place = _make_place("Castello")
    mission = _make_mission(categories=["museum"], required_count=1)
    _activate(user, mission.id)
    _activate(user, 4242)

    outcome = trigger_visit(user, place.id, 45.0, 7.0)

    assert outcome.completed_missions == [mission.id]
    assert user.missions_progresses[4242].progress == 0


def test_record_visit_is_idempotent(app):
    user = _make_user()
    place = _make_place("Castello")

    assert record_visit(user, place.id) is True
    assert record_visit(user, place.id) is False
    assert len(user.discovered_places) == 1


def test_reconcile_without_active_missions_returns_empty(app):
    user = _make_user()
    place = _make_place("Castello")

    assert reconcile_missions(user, place) == []
