import os

import pytest
from itsdangerous import URLSafeTimedSerializer
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from app import create_app
from app.models import db
from app.models.operator import Operator
from app.models.user import User
from app.services.auth_service import ROLE_USER, check_password, create_operator, hash_password


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


REGISTRATION = {
    "username": "walker",
    "name": "Ada",
    "surname": "Rossi",
    "email": "Walker@Example.com",
    "password": "s3cret-pass",
}


def test_password_hashing_roundtrip():
    hashed = hash_password("password123")
    assert hashed != "password123"
    assert check_password("password123", hashed)
    assert not check_password("wrong", hashed)
    assert not check_password("password123", None)


def test_register_and_login(client):
    response = client.post("/api/v1/auth/register", json=REGISTRATION)

    assert response.status_code == 201
    body = response.get_json()
    assert body["username"] == "walker"
    assert body["email"] == "walker@example.com"
    assert body["exp"] == 0
    assert body["expert"] is False
    assert "password_hash" not in body

    response = client.post(
        "/api/v1/auth/login", json={"username": "walker", "password": "s3cret-pass"}
    )
    assert response.status_code == 200
    token = response.get_json()["token"]

    me = client.get("/api/v1/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["discoveredPlaces"] == []


def test_register_rejects_taken_username(client):
    client.post("/api/v1/auth/register", json=REGISTRATION)

    response = client.post("/api/v1/auth/register", json=REGISTRATION)

    assert response.status_code == 409
    assert response.get_json()["error"] == "username_taken"
    assert User.query.count() == 1


def test_register_requires_all_fields(client):
    payload = dict(REGISTRATION)
    payload.pop("surname")

    response = client.post("/api/v1/auth/register", json=payload)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_registration"


def test_login_with_wrong_password(client):
    client.post("/api/v1/auth/register", json=REGISTRATION)

    response = client.post("/api/v1/auth/login", json={"username": "walker", "password": "nope"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_credentials"


def test_operator_login_and_profile(client, app):
    create_operator("Op@Example.com", "op-password", name="Olga")

    response = client.post(
        "/api/v1/operator/login", json={"email": "op@example.com", "password": "op-password"}
    )
    assert response.status_code == 200
    token = response.get_json()["token"]

    me = client.get("/api/v1/operator/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["email"] == "op@example.com"

    # operator tokens do not open user endpoints
    response = client.get("/api/v1/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_tampered_token_is_rejected(client, app):
    forged = URLSafeTimedSerializer("another-secret", salt="placequest-auth").dumps(
        {"id": 1, "role": ROLE_USER}
    )

    response = client.get("/api/v1/me", headers={"Authorization": f"Bearer {forged}"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "invalid_token"


def test_malformed_authorization_header(client):
    response = client.get("/api/v1/me", headers={"Authorization": "Token abc"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "invalid_authorization"


def test_create_operator_cli(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["create-operator", "cli@example.com", "--password", "pw"])

    assert result.exit_code == 0
    assert "cli@example.com" in result.output
    assert Operator.query.filter_by(email="cli@example.com").count() == 1

    result = runner.invoke(args=["create-operator", "cli@example.com", "--password", "pw"])
    assert result.exit_code != 0
