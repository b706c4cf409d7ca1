"""Bearer-token decorators.

Views wrapped by these decorators receive the authenticated principal as
their first argument instead of reading it from request globals.
"""

from functools import wraps

from flask import request

from ..services.auth_service import ROLE_OPERATOR, ROLE_USER, resolve_principal


def user_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = resolve_principal(request.headers.get("Authorization"), ROLE_USER)
        return f(user, *args, **kwargs)
    return decorated_function


def operator_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        operator = resolve_principal(request.headers.get("Authorization"), ROLE_OPERATOR)
        return f(operator, *args, **kwargs)
    return decorated_function


__all__ = ["operator_required", "user_required"]
