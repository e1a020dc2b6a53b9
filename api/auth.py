"""
Authentication blueprint:
- POST  /auth/register
- POST  /auth/login
- POST  /auth/refresh
- POST  /auth/logout
- GET   /auth/me
- PATCH /auth/me
- POST  /auth/change-password

Access tokens travel in the JSON body and come back in the Authorization
header. Refresh tokens only travel in an HttpOnly cookie (non-browser clients
may also post them as `refresh_token`), and rotate on every use.
"""
from __future__ import annotations

import logging

from flask import Blueprint, current_app, g, jsonify, make_response, request
from marshmallow import ValidationError

from models.schemas.user import UserOutSchema
from services import AuthResult, ClientInfo
from utils.decorators import jwt_required
from utils.exceptions import InvalidToken

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

user_out_schema = UserOutSchema()


def _auth():
    return current_app.extensions["auth"]


def _client() -> ClientInfo:
    return ClientInfo(user_agent=request.headers.get("User-Agent"), ip=request.remote_addr)


def _cookie_kwargs() -> dict:
    cfg = current_app.config
    return {
        "domain": cfg.get("COOKIE_DOMAIN"),
        "secure": bool(cfg.get("PRODUCTION")),
        "httponly": True,
        "samesite": "Lax",
    }


def _json_body() -> dict:
    """The request's JSON object; a missing or unparsable body reads as empty."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError({"_schema": ["Invalid input type."]})
    return payload


def _presented_refresh_token(payload: dict) -> str | None:
    return payload.get("refresh_token") or request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])


def _token_response(result: AuthResult, status: int):
    resp = make_response(
        jsonify(
            {
                "user": user_out_schema.dump(result.user),
                "access_token": result.access_token,
                "token_type": "bearer",
                "expires_in": result.expires_in,
            }
        ),
        status,
    )
    remaining = result.refresh_expires_at - _auth().signer.clock()
    resp.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        result.refresh_token,
        max_age=max(0, int(remaining.total_seconds())),
        **_cookie_kwargs(),
    )
    return resp


@bp.post("/register")
def register():
    """
    Register a new account and start a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, email, password, phone]
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string, minLength: 6 }
            phone: { type: string }
            branch: { type: string }
    responses:
      201:
        description: Created (access token in body, refresh token in cookie)
      400:
        description: Validation error
      409:
        description: Email already registered
    """
    payload = _json_body()
    result = _auth().credentials.register(
        name=payload.get("name"),
        email=payload.get("email"),
        password=payload.get("password"),
        phone=payload.get("phone"),
        branch=payload.get("branch"),
        client=_client(),
    )
    return _token_response(result, 201)


@bp.post("/login")
def login():
    """
    Login: return an access token and set the refresh cookie
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid email or password
    """
    payload = _json_body()
    result = _auth().credentials.login(payload.get("email"), payload.get("password"), client=_client())
    return _token_response(result, 200)


@bp.post("/refresh")
def refresh():
    """
    Exchange a refresh token for a new access/refresh pair (rotation).
    Reusing an already-rotated token revokes every session of the user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         required: false
         schema:
           type: object
           properties:
             refresh_token: { type: string, description: "Falls back to the refresh cookie" }
    responses:
      200:
        description: OK (new tokens)
      401:
        description: Invalid, expired or reused refresh token
    """
    payload = _json_body()
    token = _presented_refresh_token(payload)
    if not token:
        raise InvalidToken("No refresh token")
    result = _auth().sessions.refresh(token, client=_client())
    return _token_response(result, 200)


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: revoke the current refresh token and clear the cookie
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      204:
        description: ""
      401:
        description: Unauthorized
    """
    payload = _json_body()
    revoked = _auth().sessions.logout(g.current_user, _presented_refresh_token(payload))
    logger.info("User %s logged out (refresh token revoked: %s)", g.current_user.id, revoked)

    resp = make_response("", 204)
    resp.delete_cookie(current_app.config["REFRESH_COOKIE_NAME"], **_cookie_kwargs())
    return resp


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": user_out_schema.dump(g.current_user)}), 200


@bp.patch("/me")
@jwt_required()
def update_me():
    """
    Update the caller's profile (name, phone, branch).
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            phone: { type: string }
            branch: { type: string }
    responses:
      200:
        description: OK
      400:
        description: Validation error
    """
    payload = _json_body()
    user = _auth().credentials.update_profile(g.current_user, payload)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/change-password")
@jwt_required()
def change_password():
    """
    Change password; signs the user out of every session.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            current_password: { type: string }
            new_password: { type: string, minLength: 6 }
    responses:
      204:
        description: Password changed
      401:
        description: Current password is incorrect
    """
    payload = _json_body()
    _auth().credentials.change_password(
        g.current_user, payload.get("current_password"), payload.get("new_password")
    )
    resp = make_response("", 204)
    resp.delete_cookie(current_app.config["REFRESH_COOKIE_NAME"], **_cookie_kwargs())
    return resp
