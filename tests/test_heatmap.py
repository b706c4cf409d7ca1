import os

import pytest
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from app import create_app
from app.models import db
from app.models.mission import Mission, MissionProgress
from app.models.operator import Operator
from app.models.place import Place
from app.models.user import User
from app.services.auth_service import ROLE_OPERATOR, issue_token


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


def _operator_headers():
    operator = Operator(email="op@example.com", password_hash="x")
    db.session.add(operator)
    db.session.commit()
    return {"Authorization": f"Bearer {issue_token(operator.id, ROLE_OPERATOR)}"}


def test_heatmap_counts_completed_missions_per_place(client):
    castle = Place(name="Castello", normalized_name="castello", categories=["castle"], lat=45.0, lon=7.0)
    dome = Place(name="Duomo", normalized_name="duomo", categories=["church"], lat=45.1, lon=7.1)
    db.session.add_all([castle, dome])
    db.session.commit()

    both = Mission(name="Both", reward_exp=10, required_places=[castle.id, dome.id], required_count=2)
    castle_only = Mission(name="Castle", reward_exp=10, required_places=[castle.id, 999])
    db.session.add_all([both, castle_only])
    db.session.commit()

    for index in range(3):
        user = User(username=f"user{index}", email=f"user{index}@example.com")
        user.missions_progresses[castle_only.id] = MissionProgress(
            mission_id=castle_only.id, completed=True, progress=1
        )
        user.missions_progresses[both.id] = MissionProgress(
            mission_id=both.id, completed=index == 0, progress=2 if index == 0 else 1
        )
        db.session.add(user)
    db.session.commit()

    response = client.get("/api/v1/heatmap/missions", headers=_operator_headers())

    assert response.status_code == 200
    assert response.get_json() == [
        {
            "placeId": castle.id,
            "name": "Castello",
            "location": {"lat": 45.0, "lon": 7.0},
            "completedMissions": 4,
        },
        {
            "placeId": dome.id,
            "name": "Duomo",
            "location": {"lat": 45.1, "lon": 7.1},
            "completedMissions": 1,
        },
    ]


def test_heatmap_requires_operator(client):
    response = client.get("/api/v1/heatmap/missions")

    assert response.status_code == 401


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    body = response.get_json()
    assert body["ok"] is True
    assert body["database"]["online"] is True
