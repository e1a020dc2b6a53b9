from __future__ import annotations
from functools import wraps
from flask import current_app, g, request


def _auth():
    return current_app.extensions["auth"]


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user, claims = _auth().gate.authenticate(request.headers.get("Authorization"))
            g.current_user = user
            g.token_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(*allowed_roles: str):
    """
    Allow access if the caller's role is one of `allowed_roles`, else 403.
    """
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            _auth().gate.check_role(g.current_user, allowed_roles)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def permissions_required(*required: str):
    """
    Allow access only if the caller's role grants ALL of `required`, else 403.
    """
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            _auth().gate.check_permissions(g.current_user, required)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
