from __future__ import annotations

import logging
from typing import Tuple

from flask import Blueprint, request, jsonify, abort, current_app, g

from models.roles import Role
from models.schemas.user import RoleUpdateSchema, UserOutSchema
from utils.decorators import permissions_required, roles_required
from utils.exceptions import NotFound

logger = logging.getLogger(__name__)

MAX_LIMIT = 100

bp = Blueprint("admin", __name__)

role_update_schema = RoleUpdateSchema()
user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)


def _auth():
    return current_app.extensions["auth"]


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def parse_active():
    raw = request.args.get("active")
    if raw is None:
        return None
    return raw.lower() in ("1", "true", "yes")


def _get_user(user_id: str):
    user = _auth().users.find_by_id(user_id)
    if not user:
        raise NotFound("User not found")
    return user


@bp.get("/users")
@roles_required(Role.ADMIN)
def list_users():
    """
    List users - admin
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 20
      - in: query
        name: active
        type: boolean
    responses:
      200: { description: OK }
      403: { description: Forbidden }
    """
    page, limit = parse_pagination()
    rows, total = _auth().users.list(page, limit, active=parse_active())
    return jsonify(
        {
            "data": user_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total}
        }
    )


@bp.patch("/users/<user_id>/role")
@roles_required(Role.ADMIN)
def set_role(user_id: str):
    """
    Admin-only: set a user's role.
    Body: { "role": "Student" | "Admin" }
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role: { type: string, enum: [Student, Admin] }
    responses:
      200: { description: OK }
      400: { description: Validation error }
      404: { description: Not found }
    """
    data = role_update_schema.load(request.get_json(silent=True) or {})
    user = _get_user(user_id)
    user.role = data["role"]
    _auth().users.save(user)
    logger.info("Admin %s set role of %s to %s", g.current_user.id, user.id, user.role)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/users/<user_id>/deactivate")
@permissions_required("users:manage")
def deactivate_user(user_id: str):
    """
    Deactivate a user and revoke all of their sessions
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    user = _get_user(user_id)
    if user.id == g.current_user.id:
        abort(409, description="Admins cannot deactivate themselves")
    user.is_active = False
    _auth().users.save(user)
    revoked = _auth().tokens.revoke_all(user.id)
    logger.info("Admin %s deactivated %s; revoked %d session(s)", g.current_user.id, user.id, revoked)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/users/<user_id>/activate")
@permissions_required("users:manage")
def activate_user(user_id: str):
    """
    Reactivate a user
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    user = _get_user(user_id)
    user.is_active = True
    _auth().users.save(user)
    return jsonify({"data": user_out_schema.dump(user)}), 200
