"""Credentials, bearer tokens and principal resolution."""

from __future__ import annotations

from typing import Any, Mapping

import bcrypt
from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy import func

from app.errors import AuthError, ConflictError, ValidationError
from app.models import db
from app.models.operator import Operator
from app.models.user import User
from app.utils.db import commit_or_rollback
from app.utils.logger import get_logger

logger = get_logger(__name__)

ROLE_USER = "user"
ROLE_OPERATOR = "operator"
_TOKEN_SALT = "placequest-auth"


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(plain.encode(), salt).decode()


def check_password(plain: str, hashed: str | None) -> bool:
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        return False


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_TOKEN_SALT)


def issue_token(principal_id: int, role: str) -> str:
    return _serializer().dumps({"id": principal_id, "role": role})


def _token_max_age(role: str) -> int:
    if role == ROLE_OPERATOR:
        return int(current_app.config.get("OPERATOR_TOKEN_MAX_AGE", 24 * 3600))
    return int(current_app.config.get("USER_TOKEN_MAX_AGE", 72 * 3600))


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        raise AuthError("Authorization header missing", code="missing_authorization")
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError("Authorization header not valid", code="invalid_authorization")
    return token


def resolve_principal(authorization: str | None, role: str) -> User | Operator:
    """Return the User or Operator a bearer token was issued to."""
    token = bearer_token(authorization)
    serializer = _serializer()
    try:
        payload = serializer.loads(token, max_age=_token_max_age(role))
    except SignatureExpired:
        raise AuthError("Token expired", code="invalid_token") from None
    except BadSignature:
        raise AuthError("Token not valid", code="invalid_token") from None

    if not isinstance(payload, dict) or payload.get("role") != role or not payload.get("id"):
        raise AuthError("Token not valid", code="invalid_token")

    model = Operator if role == ROLE_OPERATOR else User
    principal = db.session.get(model, payload["id"])
    if principal is None:
        code = "operator_not_found" if role == ROLE_OPERATOR else "user_not_found"
        raise AuthError("Principal not found", code=code)
    return principal


def register_user(payload: Mapping[str, Any]) -> User:
    fields = {key: payload.get(key) for key in ("username", "name", "surname", "email", "password")}
    if any(not isinstance(value, str) or not value.strip() for value in fields.values()):
        raise ValidationError("Invalid registration data", code="invalid_registration")

    username = fields["username"].strip()
    if User.query.filter(func.lower(User.username) == username.lower()).first():
        raise ConflictError("Username already taken", code="username_taken")

    user = User(
        username=username,
        name=fields["name"].strip(),
        surname=fields["surname"].strip(),
        email=fields["email"],
        password_hash=hash_password(fields["password"]),
        exp=0,
        expert=False,
        preferred_categories=[],
    )
    db.session.add(user)
    commit_or_rollback(logger, "user registration")
    logger.info("[AUTH] Registered user %s (%s)", user.id, user.username)
    return user


def login_user(username: Any, password: Any) -> str:
    if not username or not password:
        raise ValidationError("Credentials not provided", code="missing_credentials")
    user = User.query.filter_by(username=str(username)).first()
    if user is None or not check_password(str(password), user.password_hash):
        logger.info("[AUTH] Failed login for username %r", username)
        raise ValidationError("Wrong username or password", code="invalid_credentials")
    return issue_token(user.id, ROLE_USER)


def login_operator(email: Any, password: Any) -> str:
    if not email or not password:
        raise ValidationError("Email or password missing", code="missing_credentials")
    operator = Operator.query.filter_by(email=str(email).strip().lower()).first()
    if operator is None or not check_password(str(password), operator.password_hash):
        logger.info("[AUTH] Failed operator login for %r", email)
        raise ValidationError("Wrong email or password", code="invalid_credentials")
    return issue_token(operator.id, ROLE_OPERATOR)


def create_operator(email: str, password: str, *, name: str | None = None, surname: str | None = None) -> Operator:
    if not email or not email.strip() or not password:
        raise ValidationError("Email and password are required", code="missing_credentials")
    if Operator.query.filter_by(email=email.strip().lower()).first():
        raise ConflictError("Operator already exists", code="operator_exists")
    operator = Operator(
        email=email,
        password_hash=hash_password(password),
        name=name,
        surname=surname,
    )
    db.session.add(operator)
    commit_or_rollback(logger, "operator creation")
    logger.info("[AUTH] Created operator %s", operator.id)
    return operator


__all__ = [
    "ROLE_OPERATOR",
    "ROLE_USER",
    "check_password",
    "create_operator",
    "hash_password",
    "issue_token",
    "login_operator",
    "login_user",
    "register_user",
    "resolve_principal",
]
